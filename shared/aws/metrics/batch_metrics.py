"""
shared/aws/metrics/batch_metrics.py - GetMetricData 배치 조회

GetMetricData API로 규칙 하나의 모든 (차원 조합 × 통계)를 묶어 조회합니다.

기존 get_metric_statistics()는 조합당 1 API 호출이 필요하지만,
get_metric_data()는 최대 500개 쿼리를 1회 호출로 조회 가능.

예시:
    ELB 100개 × 통계 5개 = GetMetricStatistics 100회 → GetMetricData 1회

쿼리 ID는 "q0", "q1", ... 순번이며, 응답의 ID로 원래 (조합, 통계)를 찾습니다.
GetMetricData 는 단위를 돌려주지 않으므로 unit 은 "N/A" 입니다.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from core.config.rules import Statistic
from core.exceptions import is_throttling

from .data_getter import DataGetter, MetricRuleData, metric_window
from .dimensions import DimensionCombination, to_api_dimensions
from .instrumentation import NoopRequestCounters, RequestCounters

if TYPE_CHECKING:
    from core.config.rules import MetricRule
    from core.parallel import ErrorCollector

logger = logging.getLogger(__name__)

# GetMetricData 요청당 최대 쿼리 수
MAX_QUERIES_PER_REQUEST = 500
BATCH_UNIT = "N/A"


@dataclass
class MetricQuery:
    """GetMetricData 쿼리 하나

    Attributes:
        id: 쿼리 식별자 (결과 매핑용, "q0" 형식)
        combination: 차원 조합
        stat: 표준 통계 이름 또는 확장 통계 (예: "Sum", "p99")
        statistic: 표준 통계이면 해당 Statistic, 확장 통계이면 None
    """

    id: str
    combination: DimensionCombination
    stat: str
    statistic: Statistic | None = None


def build_metric_queries(
    rule: MetricRule,
    dimension_list: Sequence[DimensionCombination],
) -> list[MetricQuery]:
    """규칙의 (조합 × 통계) 쿼리 목록 생성"""
    queries: list[MetricQuery] = []
    for combination in dimension_list:
        for statistic in rule.aws_statistics:
            queries.append(
                MetricQuery(
                    id=f"q{len(queries)}",
                    combination=combination,
                    stat=statistic.value,
                    statistic=statistic,
                )
            )
        for extended in rule.aws_extended_statistics:
            queries.append(MetricQuery(id=f"q{len(queries)}", combination=combination, stat=extended))
    return queries


def _chunks(lst: list, n: int):
    """리스트를 n개씩 분할"""
    for i in range(0, len(lst), n):
        yield lst[i : i + n]


class GetMetricDataDataGetter(DataGetter):
    """GetMetricData 배치 조회

    생성 시 모든 쿼리를 500개 단위로 나누어 조회합니다.
    배치 하나가 실패하면 그 배치에 속한 조합만 결과에서 빠집니다.

    Args:
        cloudwatch_client: boto3 CloudWatch client
        now: 수집 시작 시각 (규칙당 한 번 고정)
        rule: 메트릭 규칙
        counters: API 요청 카운터
        dimension_list: 조회할 차원 조합 목록
        errors: 배치 단위 에러 수집기
        max_retries: Throttling 시 재시도 횟수
        sleep: 재시도 대기 함수 (테스트 주입용)
    """

    def __init__(
        self,
        cloudwatch_client: Any,
        now: datetime,
        rule: MetricRule,
        counters: RequestCounters | None,
        dimension_list: Sequence[DimensionCombination],
        errors: ErrorCollector | None = None,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cloudwatch_client = cloudwatch_client
        self.rule = rule
        self.counters = counters or NoopRequestCounters()
        self.errors = errors
        self.max_retries = max_retries
        self._sleep = sleep
        self.start_time, self.end_time = metric_window(now, rule)
        self._results = self._fetch_all(build_metric_queries(rule, dimension_list))

    def metric_rule_data_for(self, combination: DimensionCombination) -> MetricRuleData | None:
        return self._results.get(combination)

    def _fetch_all(self, queries: list[MetricQuery]) -> dict[DimensionCombination, MetricRuleData]:
        results: dict[DimensionCombination, MetricRuleData] = {}

        for chunk in _chunks(queries, MAX_QUERIES_PER_REQUEST):
            try:
                newest = self._fetch_chunk(chunk)
            except (ClientError, BotoCoreError) as e:
                # 배치 전체 실패: 이 배치의 조합은 모두 결과 없음
                if self.errors is not None:
                    self.errors.collect(
                        e,
                        operation="GetMetricData",
                        namespace=self.rule.aws_namespace,
                        resource_id=f"{self.rule.aws_metric_name}[{chunk[0].id}..{chunk[-1].id}]",
                    )
                else:
                    logger.warning(f"{self.rule} GetMetricData 배치 조회 실패: {e}")
                continue

            for query in chunk:
                if query.id not in newest:
                    continue
                timestamp, value = newest[query.id]
                data = results.get(query.combination)
                if data is None:
                    data = MetricRuleData(timestamp=timestamp, unit=BATCH_UNIT)
                    results[query.combination] = data
                elif timestamp > data.timestamp:
                    data.timestamp = timestamp

                if query.statistic is not None:
                    data.statistic_values[query.statistic] = value
                else:
                    data.extended_values[query.stat] = value

        return results

    def _fetch_chunk(self, chunk: list[MetricQuery]) -> dict[str, tuple[datetime, float]]:
        """배치 하나 조회 (Pagination + Retry)

        Returns:
            {query_id: (최신 타임스탬프, 값)}
        """
        metric_data_queries = [
            {
                "Id": q.id,
                "MetricStat": {
                    "Metric": {
                        "Namespace": self.rule.aws_namespace,
                        "MetricName": self.rule.aws_metric_name,
                        "Dimensions": to_api_dimensions(q.combination),
                    },
                    "Period": self.rule.period_seconds,
                    "Stat": q.stat,
                },
                "ReturnData": True,
            }
            for q in chunk
        ]

        newest: dict[str, tuple[datetime, float]] = {}
        next_token = None
        retries = 0

        while True:
            params: dict[str, Any] = {
                "MetricDataQueries": metric_data_queries,
                "StartTime": self.start_time,
                "EndTime": self.end_time,
                "ScanBy": "TimestampDescending",
            }
            if next_token:
                params["NextToken"] = next_token

            try:
                response = self.cloudwatch_client.get_metric_data(**params)
            except ClientError as e:
                if is_throttling(e) and retries < self.max_retries:
                    retries += 1
                    wait_time = 2**retries  # Exponential backoff
                    logger.debug(f"CloudWatch Throttling, retry {retries}/{self.max_retries} after {wait_time}s")
                    self._sleep(wait_time)
                    continue
                raise
            finally:
                self.counters.cloudwatch_request("getMetricData", self.rule.aws_namespace)

            self.counters.metric_requested(self.rule.aws_metric_name, self.rule.aws_namespace, len(chunk))

            for result in response.get("MetricDataResults", []):
                query_id = result["Id"]
                for timestamp, value in zip(result.get("Timestamps", []), result.get("Values", [])):
                    current = newest.get(query_id)
                    if current is None or timestamp > current[0]:
                        newest[query_id] = (timestamp, float(value))

            next_token = response.get("NextToken")
            if not next_token:
                break

            retries = 0  # 성공 시 재시도 카운터 리셋

        return newest
