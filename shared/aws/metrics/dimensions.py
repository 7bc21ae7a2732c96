"""
shared/aws/metrics/dimensions.py - CloudWatch 차원 조합 조회

규칙 하나가 적용될 (차원 이름, 차원 값) 조합 목록을 구합니다.

구현:
- DimensionSource: 차원 조회 인터페이스
- DefaultDimensionSource: ListMetrics API로 직접 조회
  (캐시 래퍼는 dimension_cache.CachingDimensionSource)

필터 적용 순서:
1. 규칙에 선언된 차원 개수와 정확히 일치하는 메트릭만 사용
2. aws_dimension_select (정확 일치) 또는 aws_dimension_select_regex (정규식 전체 일치)
3. aws_tag_select.tag_selections 가 있으면 태그로 찾은 리소스 ID에 포함된 값만 사용

Example:
    source = DefaultDimensionSource(cloudwatch_client, counters)
    data = source.get_dimensions(rule, tag_based_resource_ids=None)
    for combination in data.dimensions:
        print(dict(combination))
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .instrumentation import NoopRequestCounters, RequestCounters

if TYPE_CHECKING:
    from core.config.rules import MetricRule

logger = logging.getLogger(__name__)

# (차원 이름, 차원 값)
Dimension = tuple[str, str]
# 하나의 시계열을 식별하는 차원 조합 (순서 유지, 해시 가능)
DimensionCombination = tuple[Dimension, ...]

# ListMetrics 는 최근 3시간 이내 데이터가 있는 메트릭만 돌려주도록 제한 가능
RECENTLY_ACTIVE = "PT3H"
RECENTLY_ACTIVE_SECONDS = 3 * 60 * 60


@dataclass(frozen=True)
class DimensionData:
    """차원 조회 결과

    Attributes:
        dimensions: 차원 조합 목록
    """

    dimensions: list[DimensionCombination] = field(default_factory=list)


def to_api_dimensions(combination: DimensionCombination) -> list[dict[str, str]]:
    """차원 조합을 CloudWatch API 형식으로 변환"""
    return [{"Name": name, "Value": value} for name, value in combination]


def format_combination(combination: DimensionCombination) -> str:
    """로그용 문자열 (예: "AvailabilityZone=us-east-1a,LoadBalancerName=lb1")"""
    return ",".join(f"{name}={value}" for name, value in combination)


class DimensionSource(ABC):
    """차원 조합 조회 인터페이스"""

    @abstractmethod
    def get_dimensions(
        self,
        rule: MetricRule,
        tag_based_resource_ids: Sequence[str] | None,
    ) -> DimensionData:
        """규칙에 해당하는 차원 조합 목록 반환

        Args:
            rule: 메트릭 규칙
            tag_based_resource_ids: 태그로 찾은 리소스 ID 목록
                (None이면 태그 기반 필터를 적용하지 않음)

        Returns:
            DimensionData
        """


class DefaultDimensionSource(DimensionSource):
    """ListMetrics API로 차원 조합을 직접 조회

    Args:
        cloudwatch_client: boto3 CloudWatch client
        counters: API 요청 카운터
    """

    def __init__(self, cloudwatch_client: Any, counters: RequestCounters | None = None):
        self.cloudwatch_client = cloudwatch_client
        self.counters = counters or NoopRequestCounters()

    def get_dimensions(
        self,
        rule: MetricRule,
        tag_based_resource_ids: Sequence[str] | None,
    ) -> DimensionData:
        select = rule.aws_dimension_select
        if (
            rule.aws_dimensions
            and select is not None
            and set(select.keys()) == set(rule.aws_dimensions)
            and rule.aws_tag_select is None
        ):
            # 모든 차원 값이 설정에 명시되어 있으면 API 조회 없이 조합 생성
            return DimensionData(permute_dimensions(rule.aws_dimensions, select))

        return DimensionData(self._list_dimensions(rule, tag_based_resource_ids))

    def _list_dimensions(
        self,
        rule: MetricRule,
        tag_based_resource_ids: Sequence[str] | None,
    ) -> list[DimensionCombination]:
        if not rule.aws_dimensions:
            # 차원이 없는 메트릭은 빈 조합 하나로 조회
            return [()]

        params: dict[str, Any] = {
            "Namespace": rule.aws_namespace,
            "MetricName": rule.aws_metric_name,
            "Dimensions": [{"Name": name} for name in rule.aws_dimensions],
        }
        if rule.range_seconds < RECENTLY_ACTIVE_SECONDS:
            params["RecentlyActive"] = RECENTLY_ACTIVE

        resource_ids = set(tag_based_resource_ids) if tag_based_resource_ids is not None else None
        expected_count = len(rule.aws_dimensions)
        order = {name: i for i, name in enumerate(rule.aws_dimensions)}

        combinations: list[DimensionCombination] = []
        next_token = None
        while True:
            if next_token:
                params["NextToken"] = next_token

            response = self.cloudwatch_client.list_metrics(**params)
            self.counters.cloudwatch_request("listMetrics", rule.aws_namespace)

            for metric in response.get("Metrics", []):
                dimensions = metric.get("Dimensions", [])
                if len(dimensions) != expected_count:
                    # 요청한 차원 외의 차원이 더 붙은 메트릭도 함께 반환되므로 제외
                    continue

                combination = tuple(
                    sorted(
                        ((d["Name"], d["Value"]) for d in dimensions),
                        key=lambda d: order.get(d[0], expected_count),
                    )
                )
                if use_combination(rule, resource_ids, combination):
                    combinations.append(combination)

            next_token = response.get("NextToken")
            if not next_token:
                break

        if not combinations and rule.warn_on_empty_list_dimensions:
            logger.warning(
                f"(list_dimensions) {rule.aws_namespace}:{rule.aws_metric_name} 조회 결과 없음 "
                f"(dimensions={list(rule.aws_dimensions)})"
            )

        return combinations


def permute_dimensions(
    dimension_names: Sequence[str],
    dimension_select: dict[str, list[str]],
) -> list[DimensionCombination]:
    """선언된 차원 값 목록의 모든 조합 생성 (dimension_names 순서)"""
    value_lists = [[(name, value) for value in dimension_select[name]] for name in dimension_names]
    return [tuple(combination) for combination in itertools.product(*value_lists)]


def use_combination(
    rule: MetricRule,
    resource_ids: set[str] | None,
    combination: DimensionCombination,
) -> bool:
    """차원 조합이 규칙의 필터를 모두 통과하는지 확인"""
    if rule.aws_dimension_select is not None and not _matches_dimension_select(rule, combination):
        return False
    if rule.aws_dimension_select_regex is not None and not _matches_dimension_select_regex(rule, combination):
        return False
    if rule.aws_tag_select is not None and resource_ids is not None:
        return _matches_tag_select(rule, resource_ids, combination)
    return True


def _matches_dimension_select(rule: MetricRule, combination: DimensionCombination) -> bool:
    select = rule.aws_dimension_select or {}
    for name, value in combination:
        if name in select and value not in select[name]:
            return False
    return True


def _matches_dimension_select_regex(rule: MetricRule, combination: DimensionCombination) -> bool:
    select = rule.aws_dimension_select_regex or {}
    for name, value in combination:
        patterns = select.get(name)
        if patterns is not None and not any(p.fullmatch(value) for p in patterns):
            return False
    return True


def _matches_tag_select(rule: MetricRule, resource_ids: set[str], combination: DimensionCombination) -> bool:
    tag_select = rule.aws_tag_select
    if tag_select is None or tag_select.tag_selections is None:
        return True

    for name, value in combination:
        if name == tag_select.resource_id_dimension:
            return value in resource_ids
    return True
