"""
shared/aws/metrics/data_getter.py - 차원 조합별 메트릭 값 조회

규칙 하나의 모든 차원 조합에 대해 최신 데이터포인트를 조회합니다.
조회 방식은 두 가지이며, 수집기(collector)는 DataGetter 인터페이스만 사용합니다.

- GetMetricStatisticsDataGetter: 조합당 GetMetricStatistics 1회 호출 (이 모듈)
- GetMetricDataDataGetter: 최대 500개 쿼리를 묶어 GetMetricData 호출 (batch_metrics.py)

두 방식 모두 다음을 보장합니다:
- 가장 최근 타임스탬프의 값 하나만 사용
- 데이터포인트가 없는 조합은 None (샘플 미생성, 에러 아님)
- 조합 단위 API 실패는 ErrorCollector에 기록하고 None 처리
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from core.config.rules import Statistic

from .dimensions import DimensionCombination, format_combination, to_api_dimensions
from .instrumentation import NoopRequestCounters, RequestCounters

if TYPE_CHECKING:
    from core.config.rules import MetricRule
    from core.parallel import ErrorCollector, WorkerPool

logger = logging.getLogger(__name__)


@dataclass
class MetricRuleData:
    """차원 조합 하나의 조회 결과

    Attributes:
        timestamp: 데이터포인트 시각 (UTC)
        unit: CloudWatch 단위 (GetMetricData 는 "N/A")
        statistic_values: {표준 통계: 값}, 응답에 있는 통계만 포함
        extended_values: {확장 통계 이름: 값}, 응답에 있는 통계만 포함
    """

    timestamp: datetime
    unit: str
    statistic_values: dict[Statistic, float] = field(default_factory=dict)
    extended_values: dict[str, float] = field(default_factory=dict)


class DataGetter(ABC):
    """차원 조합별 메트릭 값 조회 인터페이스"""

    @abstractmethod
    def metric_rule_data_for(self, combination: DimensionCombination) -> MetricRuleData | None:
        """조합의 최신 데이터 반환 (없으면 None)"""


def metric_window(now: datetime, rule: MetricRule) -> tuple[datetime, datetime]:
    """조회 구간 계산

    end = now - delay, start = end - range (초 단위 절삭)

    Returns:
        (start_time, end_time)
    """
    now = now.replace(microsecond=0)
    end_time = now - timedelta(seconds=rule.delay_seconds)
    start_time = end_time - timedelta(seconds=rule.range_seconds)
    return start_time, end_time


def newest_datapoint(datapoints: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    """Timestamp가 가장 최근인 데이터포인트 반환"""
    newest = None
    for datapoint in datapoints:
        if newest is None or datapoint["Timestamp"] > newest["Timestamp"]:
            newest = datapoint
    return newest


# =============================================================================
# GetMetricStatistics
# =============================================================================


class GetMetricStatisticsDataGetter(DataGetter):
    """조합당 GetMetricStatistics 1회 호출

    생성 시 모든 조합을 워커 풀에서 병렬 조회하고,
    metric_rule_data_for() 는 조회 결과를 반환만 합니다.

    Args:
        cloudwatch_client: boto3 CloudWatch client
        now: 수집 시작 시각 (규칙당 한 번 고정)
        rule: 메트릭 규칙
        counters: API 요청 카운터
        dimension_list: 조회할 차원 조합 목록
        pool: 워커 풀 (None이면 순차 조회)
        errors: 조합 단위 에러 수집기
    """

    def __init__(
        self,
        cloudwatch_client: Any,
        now: datetime,
        rule: MetricRule,
        counters: RequestCounters | None,
        dimension_list: Sequence[DimensionCombination],
        pool: WorkerPool | None = None,
        errors: ErrorCollector | None = None,
    ):
        self.cloudwatch_client = cloudwatch_client
        self.rule = rule
        self.counters = counters or NoopRequestCounters()
        self.errors = errors
        self.start_time, self.end_time = metric_window(now, rule)
        self._results = self._fetch_all(dimension_list, pool)

    def metric_rule_data_for(self, combination: DimensionCombination) -> MetricRuleData | None:
        return self._results.get(combination)

    def _fetch_all(
        self,
        dimension_list: Sequence[DimensionCombination],
        pool: WorkerPool | None,
    ) -> dict[DimensionCombination, MetricRuleData | None]:
        if pool is None:
            return {combination: self._fetch_one(combination) for combination in dimension_list}

        outcomes = pool.map_ordered(self._fetch_one, dimension_list)
        results: dict[DimensionCombination, MetricRuleData | None] = {}
        for combination, outcome in zip(dimension_list, outcomes):
            if not outcome.ok:
                # _fetch_one이 처리하지 못한 예외 (파싱 오류 등)
                logger.warning(
                    f"{self.rule} [{format_combination(combination)}] 조회 실패: {outcome.error}",
                )
                results[combination] = None
                continue
            results[combination] = outcome.value
        return results

    def _fetch_one(self, combination: DimensionCombination) -> MetricRuleData | None:
        params: dict[str, Any] = {
            "Namespace": self.rule.aws_namespace,
            "MetricName": self.rule.aws_metric_name,
            "Dimensions": to_api_dimensions(combination),
            "StartTime": self.start_time,
            "EndTime": self.end_time,
            "Period": self.rule.period_seconds,
        }
        if self.rule.aws_statistics:
            params["Statistics"] = [s.value for s in self.rule.aws_statistics]
        if self.rule.aws_extended_statistics:
            params["ExtendedStatistics"] = list(self.rule.aws_extended_statistics)

        try:
            response = self.cloudwatch_client.get_metric_statistics(**params)
        except (ClientError, BotoCoreError) as e:
            self._record_error(e, combination)
            return None
        finally:
            self.counters.cloudwatch_request("getMetricStatistics", self.rule.aws_namespace)
            self.counters.metric_requested(self.rule.aws_metric_name, self.rule.aws_namespace)

        datapoint = newest_datapoint(response.get("Datapoints", []))
        if datapoint is None:
            return None
        return _datapoint_to_rule_data(datapoint)

    def _record_error(self, error: Exception, combination: DimensionCombination) -> None:
        if self.errors is not None:
            self.errors.collect(
                error,
                operation="GetMetricStatistics",
                namespace=self.rule.aws_namespace,
                resource_id=f"{self.rule.aws_metric_name}[{format_combination(combination)}]",
            )
        else:
            logger.warning(f"{self.rule} [{format_combination(combination)}] 조회 실패: {error}")


def _datapoint_to_rule_data(datapoint: dict[str, Any]) -> MetricRuleData:
    statistic_values: dict[Statistic, float] = {}
    for statistic in Statistic:
        if statistic.value in datapoint:
            statistic_values[statistic] = float(datapoint[statistic.value])

    extended_values: dict[str, float] = {}
    for name, value in datapoint.get("ExtendedStatistics", {}).items():
        extended_values[name] = float(value)

    return MetricRuleData(
        timestamp=datapoint["Timestamp"],
        unit=datapoint.get("Unit", "None"),
        statistic_values=statistic_values,
        extended_values=extended_values,
    )
