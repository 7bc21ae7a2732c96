"""
shared/aws/metrics/naming.py - Prometheus 메트릭/레이블 이름 변환

CloudWatch 네임스페이스, 메트릭 이름, 차원 이름을
Prometheus에서 허용하는 이름으로 변환합니다.

규칙:
- 메트릭 이름: [a-zA-Z0-9:_] 만 허용, 나머지는 `_`
- 레이블 이름: [a-zA-Z0-9_] 만 허용, 나머지는 `_`
- 연속 underscore는 하나로 병합

Example:
    metric_base_name(rule)              # "aws_elb_request_count"
    safe_label_name(to_snake_case("AvailabilityZone"))  # "availability_zone"
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.config.rules import MetricRule

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9:_]")
_INVALID_LABEL_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_REPEATED_UNDERSCORES = re.compile(r"__+")

# GlobalSecondaryIndexName 차원이 붙으면 테이블 메트릭과 이름이 겹치는 DynamoDB 메트릭
BROKEN_DYNAMO_METRICS = frozenset(
    {
        "ConsumedReadCapacityUnits",
        "ConsumedWriteCapacityUnits",
        "ProvisionedReadCapacityUnits",
        "ProvisionedWriteCapacityUnits",
        "ReadThrottleEvents",
        "WriteThrottleEvents",
    }
)


def to_snake_case(name: str) -> str:
    """CamelCase를 snake_case로 변환 (소문자화 포함)

    Example:
        to_snake_case("RequestCount")  # "request_count"
        to_snake_case("CPUUtilization")  # "cpuutilization"
    """
    return _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()


def safe_name(name: str) -> str:
    """메트릭 이름으로 사용할 수 있게 변환 (멱등)"""
    return _REPEATED_UNDERSCORES.sub("_", _INVALID_NAME_CHARS.sub("_", name))


def safe_label_name(name: str) -> str:
    """레이블 이름으로 사용할 수 있게 변환 (멱등)"""
    return _REPEATED_UNDERSCORES.sub("_", _INVALID_LABEL_CHARS.sub("_", name))


def job_name(namespace: str) -> str:
    """job 레이블 값 (예: "AWS/ELB" -> "aws_elb")"""
    return safe_name(namespace.lower())


def metric_base_name(rule: MetricRule) -> str:
    """규칙의 기본 메트릭 이름

    네임스페이스 + 메트릭 이름을 조합하고, 이름이 겹치는
    DynamoDB GSI 메트릭에는 `_index` 접미사를 붙입니다.
    """
    base = safe_name(rule.aws_namespace.lower() + "_" + to_snake_case(rule.aws_metric_name))

    if (
        rule.aws_namespace == "AWS/DynamoDB"
        and "GlobalSecondaryIndexName" in rule.aws_dimensions
        and rule.aws_metric_name in BROKEN_DYNAMO_METRICS
    ):
        base += "_index"

    return base


def extended_statistic_suffix(statistic: str) -> str:
    """확장 통계 이름 접미사 (예: "p99.9" -> "_p99_9")"""
    return "_" + safe_name(to_snake_case(statistic))


def dimension_label_name(dimension_name: str) -> str:
    """차원 이름을 레이블 이름으로 변환"""
    return safe_label_name(to_snake_case(dimension_name))
