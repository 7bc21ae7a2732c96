"""
core/config - 설정 모델 및 로더

주요 구성 요소:
- MetricRule / AWSTagSelect / Statistic: 메트릭 규칙 모델 (rules.py)
- load_config / ExporterConfig: YAML 설정 로드 및 검증 (loader.py)

Example:
    from core.config import load_config

    config = load_config(Path("config.yml"))
"""

# rules 를 먼저 로드 (loader 가 의존하는 shared.aws.metrics 가 rules 를 참조)
from .rules import (
    DEFAULT_ARN_RESOURCE_ID_REGEXP,
    DEFAULT_STATISTICS,
    AWSTagSelect,
    ExporterDefaults,
    MetricRule,
    Statistic,
)

from .loader import ExporterConfig, load_config, parse_config  # noqa: E402

__all__: list[str] = [
    # Rules
    "MetricRule",
    "AWSTagSelect",
    "Statistic",
    "ExporterDefaults",
    "DEFAULT_STATISTICS",
    "DEFAULT_ARN_RESOURCE_ID_REGEXP",
    # Loader
    "ExporterConfig",
    "load_config",
    "parse_config",
]
