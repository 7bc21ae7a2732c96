"""
core/config/loader.py - YAML 설정 로드 및 검증

설정 파일(YAML, JSON 포함)을 읽어 ExporterConfig로 변환합니다.
검증에 실패하면 ConfigError를 발생시키고 설정은 전혀 적용되지 않습니다.

설정 예시:
    region: us-east-1
    period_seconds: 60
    list_metrics_cache_ttl: 600
    metrics:
      - aws_namespace: AWS/ELB
        aws_metric_name: RequestCount
        aws_dimensions: [AvailabilityZone, LoadBalancerName]
        aws_statistics: [Sum]

Usage:
    from core.config import load_config

    config = load_config(Path("config.yml"))
    for rule in config.rules:
        print(rule)
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Union

import yaml  # type: ignore[import-untyped]

from core.exceptions import ConfigError, ValidationError
from shared.aws.metrics.dimension_cache import DimensionCacheConfig

from .rules import DEFAULT_STATISTICS, AWSTagSelect, ExporterDefaults, MetricRule, Statistic

logger = logging.getLogger(__name__)

DEFAULT_PARALLELISM = 10

ConfigSource = Union[str, os.PathLike, IO[str], Mapping[str, Any]]


@dataclass(frozen=True)
class ExporterConfig:
    """로드된 설정 전체

    Attributes:
        rules: 메트릭 규칙 목록 (설정 파일 순서)
        defaults: 전역 기본값
        region: AWS 리전 (None이면 boto3 기본 체인)
        role_arn: 수임할 IAM Role ARN
        parallelism: 워커 풀 크기
        cache_config: ListMetrics 캐시 TTL 설정 (규칙별 override 포함)
    """

    rules: tuple[MetricRule, ...]
    defaults: ExporterDefaults = field(default_factory=ExporterDefaults)
    region: str | None = None
    role_arn: str | None = None
    parallelism: int = DEFAULT_PARALLELISM
    cache_config: DimensionCacheConfig = field(default_factory=DimensionCacheConfig)


# =============================================================================
# 로드
# =============================================================================


def load_config(source: ConfigSource) -> ExporterConfig:
    """설정 로드 및 검증

    Args:
        source: 파일 경로(Path), YAML 문자열, 파일 객체, 또는 파싱된 딕셔너리

    Returns:
        ExporterConfig

    Raises:
        ConfigError: 파싱 실패 또는 검증 실패
    """
    raw = _read_source(source)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValidationError("config", type(raw).__name__, "mapping")

    return parse_config(raw)


def _read_source(source: ConfigSource) -> Any:
    if isinstance(source, Mapping):
        return source

    try:
        if isinstance(source, os.PathLike):
            path = Path(source)
            with path.open(encoding="utf-8") as f:
                return yaml.safe_load(f)
        # 문자열 또는 파일 객체
        return yaml.safe_load(source)
    except OSError as e:
        raise ConfigError("config", f"설정 파일을 읽을 수 없습니다: {source}", cause=e) from e
    except yaml.YAMLError as e:
        raise ConfigError("config", "YAML 파싱 실패", cause=e) from e


def parse_config(raw: Mapping[str, Any]) -> ExporterConfig:
    """파싱된 딕셔너리를 ExporterConfig로 변환"""
    if "metrics" not in raw:
        raise ConfigError("metrics", "metrics 항목이 필요합니다")

    defaults = ExporterDefaults(
        period_seconds=_get_int(raw, "period_seconds", 60),
        range_seconds=_get_int(raw, "range_seconds", 600),
        delay_seconds=_get_int(raw, "delay_seconds", 600),
        set_timestamp=_get_bool(raw, "set_timestamp", True),
        use_get_metric_data=_get_bool(raw, "use_get_metric_data", False),
        list_metrics_cache_ttl=_get_int(raw, "list_metrics_cache_ttl", 0),
        warn_on_empty_list_dimensions=_get_bool(raw, "warn_on_empty_list_dimensions", False),
    )

    parallelism = _get_int(raw, "parallelism", DEFAULT_PARALLELISM)
    if parallelism < 1:
        raise ValidationError("parallelism", parallelism, ">= 1")

    metrics = raw["metrics"]
    if not isinstance(metrics, list):
        raise ValidationError("metrics", type(metrics).__name__, "list")

    cache_config = DimensionCacheConfig(default_ttl=defaults.list_metrics_cache_ttl)
    rules: list[MetricRule] = []
    for index, item in enumerate(metrics):
        if not isinstance(item, Mapping):
            raise ValidationError(f"metrics[{index}]", type(item).__name__, "mapping")
        rule = parse_rule(item, defaults)
        if "list_metrics_cache_ttl" in item:
            cache_config.add_override(rule)
        rules.append(rule)

    return ExporterConfig(
        rules=tuple(rules),
        defaults=defaults,
        region=_get_str(raw, "region"),
        role_arn=_get_str(raw, "role_arn"),
        parallelism=parallelism,
        cache_config=cache_config,
    )


def parse_rule(item: Mapping[str, Any], defaults: ExporterDefaults) -> MetricRule:
    """metrics 항목 하나를 MetricRule로 변환"""
    namespace = _get_str(item, "aws_namespace")
    metric_name = _get_str(item, "aws_metric_name")
    if not namespace or not metric_name:
        raise ConfigError("metrics", "aws_namespace와 aws_metric_name은 필수입니다")

    statistics: tuple[Statistic, ...]
    extended = tuple(_get_str_list(item, "aws_extended_statistics") or ())
    if "aws_statistics" in item:
        statistics = tuple(_parse_statistic(name) for name in _get_str_list(item, "aws_statistics") or ())
    elif extended:
        statistics = ()
    else:
        statistics = DEFAULT_STATISTICS

    return MetricRule(
        aws_namespace=namespace,
        aws_metric_name=metric_name,
        help=_get_str(item, "help"),
        aws_dimensions=tuple(_get_str_list(item, "aws_dimensions") or ()),
        aws_dimension_select=_parse_dimension_select(item),
        aws_dimension_select_regex=_parse_dimension_select_regex(item),
        aws_statistics=statistics,
        aws_extended_statistics=extended,
        period_seconds=_get_int(item, "period_seconds", defaults.period_seconds),
        range_seconds=_get_int(item, "range_seconds", defaults.range_seconds),
        delay_seconds=_get_int(item, "delay_seconds", defaults.delay_seconds),
        set_timestamp=_get_bool(item, "set_timestamp", defaults.set_timestamp),
        use_get_metric_data=_get_bool(item, "use_get_metric_data", defaults.use_get_metric_data),
        warn_on_empty_list_dimensions=_get_bool(
            item, "warn_on_empty_list_dimensions", defaults.warn_on_empty_list_dimensions
        ),
        aws_tag_select=_parse_tag_select(item.get("aws_tag_select")),
        list_metrics_cache_ttl=_get_int(item, "list_metrics_cache_ttl", defaults.list_metrics_cache_ttl),
    )


# =============================================================================
# 항목 파서
# =============================================================================


def _parse_statistic(name: str) -> Statistic:
    try:
        return Statistic(name)
    except ValueError as e:
        expected = ", ".join(s.value for s in Statistic)
        raise ValidationError("aws_statistics", name, expected, cause=e) from e


def _parse_dimension_select(item: Mapping[str, Any]) -> dict[str, list[str]] | None:
    raw = item.get("aws_dimension_select")
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError("aws_dimension_select", type(raw).__name__, "mapping")
    return {str(name): _str_list("aws_dimension_select", values) for name, values in raw.items()}


def _parse_dimension_select_regex(item: Mapping[str, Any]) -> dict[str, list[re.Pattern[str]]] | None:
    raw = item.get("aws_dimension_select_regex")
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError("aws_dimension_select_regex", type(raw).__name__, "mapping")
    return {
        str(name): [_compile("aws_dimension_select_regex", p) for p in _str_list("aws_dimension_select_regex", values)]
        for name, values in raw.items()
    }


def _parse_tag_select(raw: Any) -> AWSTagSelect | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError("aws_tag_select", type(raw).__name__, "mapping")

    tag_selections: dict[str, list[str] | None] | None = None
    raw_selections = raw.get("tag_selections")
    if raw_selections is not None:
        if not isinstance(raw_selections, Mapping):
            raise ValidationError("aws_tag_select.tag_selections", type(raw_selections).__name__, "mapping")
        tag_selections = {
            str(key): None if values is None else _str_list("aws_tag_select.tag_selections", values)
            for key, values in raw_selections.items()
        }

    arn_regexp = None
    if raw.get("arn_resource_id_regexp") is not None:
        arn_regexp = _compile("aws_tag_select.arn_resource_id_regexp", raw["arn_resource_id_regexp"])

    return AWSTagSelect(
        resource_type_selection=_get_str(raw, "resource_type_selection") or "",
        resource_id_dimension=_get_str(raw, "resource_id_dimension") or "",
        tag_selections=tag_selections,
        arn_resource_id_regexp=arn_regexp,
    )


# =============================================================================
# 타입 검증 헬퍼
# =============================================================================


def _compile(key: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError(key, pattern, "valid regular expression", cause=e) from e


def _str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ValidationError(key, type(value).__name__, "list")
    return [str(v) for v in value]


def _get_str_list(raw: Mapping[str, Any], key: str) -> list[str] | None:
    value = raw.get(key)
    if value is None:
        return None
    return _str_list(key, value)


def _get_str(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(key, value, "string")
    return value


def _get_int(raw: Mapping[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    # bool은 int의 하위 타입이므로 별도 제외
    if isinstance(value, bool):
        raise ValidationError(key, value, "integer")
    # YAML 60.0 처럼 소수점이 붙은 정수 값 허용
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValidationError(key, value, "integer")
    return value


def _get_bool(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(key, value, "boolean")
    return value
