"""
core/cloudwatch - CloudWatch → Prometheus 수집기

Usage:
    from core.cloudwatch import CloudWatchCollector

    collector = CloudWatchCollector(Path("config.yml"))
    families = collector.scrape()
"""

from .collector import ActiveConfig, CloudWatchCollector

__all__ = ["ActiveConfig", "CloudWatchCollector"]
