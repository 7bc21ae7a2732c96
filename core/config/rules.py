"""
core/config/rules.py - 메트릭 규칙 모델

설정 파일의 `metrics` 항목 하나가 MetricRule 하나가 됩니다.
규칙은 설정 로드 시 한 번 생성되고 이후 변경되지 않습니다.
리로드 시에는 규칙 목록 전체가 새 객체로 교체됩니다.

주요 구성 요소:
- Statistic: CloudWatch 표준 통계 (Sum, SampleCount, Minimum, Maximum, Average)
- AWSTagSelect: 태그 기반 리소스 선택 설정
- MetricRule: 내보낼 CloudWatch 메트릭 하나의 설정
- ExporterDefaults: 규칙에 값이 없을 때 사용하는 전역 기본값
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from core.exceptions import ConfigError

# 기본 ARN 리소스 ID 추출 패턴
# 마지막 "type/id" 의 id 또는 마지막 ":"/"/" 구분 세그먼트를 캡처
DEFAULT_ARN_RESOURCE_ID_REGEXP = re.compile(r"(?:([^:/]+)|[^:/]+/([^:]+))$")


class Statistic(Enum):
    """CloudWatch 표준 통계 종류

    value는 CloudWatch API에서 사용하는 이름과 동일합니다.
    """

    SUM = "Sum"
    SAMPLE_COUNT = "SampleCount"
    MINIMUM = "Minimum"
    MAXIMUM = "Maximum"
    AVERAGE = "Average"

    @property
    def suffix(self) -> str:
        """메트릭 이름 접미사 (예: "_sample_count")"""
        return _STATISTIC_SUFFIXES[self]


_STATISTIC_SUFFIXES: dict[Statistic, str] = {
    Statistic.SUM: "_sum",
    Statistic.SAMPLE_COUNT: "_sample_count",
    Statistic.MINIMUM: "_minimum",
    Statistic.MAXIMUM: "_maximum",
    Statistic.AVERAGE: "_average",
}

# aws_statistics, aws_extended_statistics 모두 없을 때 사용
DEFAULT_STATISTICS: tuple[Statistic, ...] = (
    Statistic.SUM,
    Statistic.SAMPLE_COUNT,
    Statistic.MINIMUM,
    Statistic.MAXIMUM,
    Statistic.AVERAGE,
)


@dataclass(frozen=True)
class AWSTagSelect:
    """태그 기반 리소스 선택 설정

    Attributes:
        resource_type_selection: Tagging API 리소스 타입 필터 (예: "ec2:instance")
        resource_id_dimension: 리소스 ID가 들어가는 CloudWatch 차원 이름
        tag_selections: {태그 키: 허용 값 목록}, 값 목록이 None이면 키만 일치하면 됨
        arn_resource_id_regexp: ARN에서 리소스 ID를 추출하는 정규식 (None이면 기본값)
    """

    resource_type_selection: str
    resource_id_dimension: str
    tag_selections: dict[str, list[str] | None] | None = None
    arn_resource_id_regexp: re.Pattern[str] | None = None

    def __post_init__(self) -> None:
        if not self.resource_type_selection or not self.resource_id_dimension:
            raise ConfigError(
                "aws_tag_select",
                "resource_type_selection과 resource_id_dimension은 필수입니다",
            )

    @property
    def arn_regexp(self) -> re.Pattern[str]:
        """적용할 ARN 리소스 ID 정규식 (규칙 지정값 우선)"""
        return self.arn_resource_id_regexp or DEFAULT_ARN_RESOURCE_ID_REGEXP


@dataclass(frozen=True, eq=False)
class MetricRule:
    """내보낼 CloudWatch 메트릭 하나의 설정

    eq=False 이므로 해시/비교는 객체 동일성 기준입니다.
    캐시 TTL override 조회가 규칙 객체 자체를 키로 사용합니다.

    Attributes:
        aws_namespace: CloudWatch 네임스페이스 (예: "AWS/ELB")
        aws_metric_name: 메트릭 이름 (예: "RequestCount")
        help: 메트릭 설명 (None이면 자동 생성)
        aws_dimensions: 조회에 사용하는 차원 이름 목록 (순서 유지)
        aws_dimension_select: {차원 이름: 허용 값 목록} 정확 일치 필터
        aws_dimension_select_regex: {차원 이름: 정규식 목록} 정규식 필터
        aws_statistics: 표준 통계 목록
        aws_extended_statistics: 확장 통계 목록 (예: "p99")
        period_seconds: 집계 주기 (초)
        range_seconds: 조회 범위 (초)
        delay_seconds: 현재 시각 기준 지연 (초)
        set_timestamp: CloudWatch 타임스탬프를 샘플에 붙일지 여부
        use_get_metric_data: GetMetricData 배치 조회 사용 여부
        warn_on_empty_list_dimensions: 차원 조회 결과가 비었을 때 경고 여부
        aws_tag_select: 태그 기반 리소스 선택 설정
        list_metrics_cache_ttl: ListMetrics 캐시 TTL (초, 0이면 캐시 안 함)
    """

    aws_namespace: str
    aws_metric_name: str
    help: str | None = None
    aws_dimensions: tuple[str, ...] = ()
    aws_dimension_select: dict[str, list[str]] | None = None
    aws_dimension_select_regex: dict[str, list[re.Pattern[str]]] | None = None
    aws_statistics: tuple[Statistic, ...] = DEFAULT_STATISTICS
    aws_extended_statistics: tuple[str, ...] = ()
    period_seconds: int = 60
    range_seconds: int = 600
    delay_seconds: int = 600
    set_timestamp: bool = True
    use_get_metric_data: bool = False
    warn_on_empty_list_dimensions: bool = False
    aws_tag_select: AWSTagSelect | None = None
    list_metrics_cache_ttl: int = 0

    def __post_init__(self) -> None:
        if not self.aws_namespace or not self.aws_metric_name:
            raise ConfigError("metrics", "aws_namespace와 aws_metric_name은 필수입니다")
        if self.aws_dimension_select is not None and self.aws_dimension_select_regex is not None:
            raise ConfigError(
                "metrics",
                "aws_dimension_select와 aws_dimension_select_regex는 동시에 지정할 수 없습니다",
            )
        if not self.aws_statistics and not self.aws_extended_statistics:
            raise ConfigError(
                "metrics",
                f"{self.aws_namespace}/{self.aws_metric_name}: 통계가 하나 이상 필요합니다",
            )
        if self.period_seconds <= 0:
            raise ConfigError("period_seconds", f"양수여야 합니다: {self.period_seconds}")
        if self.range_seconds < 0 or self.delay_seconds < 0:
            raise ConfigError("range_seconds/delay_seconds", "음수일 수 없습니다")
        if self.list_metrics_cache_ttl < 0:
            raise ConfigError("list_metrics_cache_ttl", "음수일 수 없습니다")

    @property
    def all_statistics(self) -> list[str]:
        """표준 + 확장 통계 이름 목록"""
        return [s.value for s in self.aws_statistics] + list(self.aws_extended_statistics)

    def __str__(self) -> str:
        return f"{self.aws_namespace}/{self.aws_metric_name}"


@dataclass(frozen=True)
class ExporterDefaults:
    """전역 기본값

    규칙에 같은 키가 없을 때 이 값이 사용됩니다.
    """

    period_seconds: int = 60
    range_seconds: int = 600
    delay_seconds: int = 600
    set_timestamp: bool = True
    use_get_metric_data: bool = False
    list_metrics_cache_ttl: int = 0
    warn_on_empty_list_dimensions: bool = False
