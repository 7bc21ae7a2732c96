"""
shared/aws/metrics/instrumentation.py - API 요청 카운터

CloudWatch / Tagging API 요청 수를 관측용으로 기록합니다.
기능 동작과는 무관한 부수 효과이므로, 컴포넌트에 주입하는 형태로 사용하고
테스트에서는 NoopRequestCounters를 사용합니다.

노출 메트릭:
- cloudwatch_requests_total{action, namespace}
- cloudwatch_metrics_requested_total{metric_name, namespace}
- tagging_api_requests_total{action, resource_type}
"""

from __future__ import annotations

import threading
from typing import Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter


class RequestCounters(Protocol):
    """API 요청 카운터 인터페이스"""

    def cloudwatch_request(self, action: str, namespace: str) -> None: ...

    def metric_requested(self, metric_name: str, namespace: str, count: int = 1) -> None: ...

    def tagging_request(self, action: str, resource_type: str) -> None: ...


class NoopRequestCounters:
    """아무것도 기록하지 않는 카운터 (테스트용)"""

    def cloudwatch_request(self, action: str, namespace: str) -> None:
        pass

    def metric_requested(self, metric_name: str, namespace: str, count: int = 1) -> None:
        pass

    def tagging_request(self, action: str, resource_type: str) -> None:
        pass


class PrometheusRequestCounters:
    """prometheus_client Counter 기반 요청 카운터

    Args:
        registry: 카운터를 등록할 레지스트리 (기본: 전역 REGISTRY)
    """

    def __init__(self, registry: CollectorRegistry | None = REGISTRY):
        self.cloudwatch_requests = Counter(
            "cloudwatch_requests",
            "API requests made to CloudWatch",
            ["action", "namespace"],
            registry=registry,
        )
        self.cloudwatch_metrics_requested = Counter(
            "cloudwatch_metrics_requested",
            "Metrics requested by either GetMetricStatistics or GetMetricData",
            ["metric_name", "namespace"],
            registry=registry,
        )
        self.tagging_api_requests = Counter(
            "tagging_api_requests",
            "API requests made to the Resource Groups Tagging API",
            ["action", "resource_type"],
            registry=registry,
        )

    def cloudwatch_request(self, action: str, namespace: str) -> None:
        self.cloudwatch_requests.labels(action, namespace).inc()

    def metric_requested(self, metric_name: str, namespace: str, count: int = 1) -> None:
        self.cloudwatch_metrics_requested.labels(metric_name, namespace).inc(count)

    def tagging_request(self, action: str, resource_type: str) -> None:
        self.tagging_api_requests.labels(action, resource_type).inc()


_default_counters: PrometheusRequestCounters | None = None
_default_counters_lock = threading.Lock()


def get_default_counters() -> PrometheusRequestCounters:
    """전역 REGISTRY에 등록된 카운터 (프로세스당 한 번만 등록)"""
    global _default_counters
    with _default_counters_lock:
        if _default_counters is None:
            _default_counters = PrometheusRequestCounters()
        return _default_counters
