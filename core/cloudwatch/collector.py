"""
core/cloudwatch/collector.py - CloudWatch 메트릭 수집기

설정된 규칙마다 태그 조회 → 차원 조회 → 값 조회를 수행하고,
결과를 Prometheus 메트릭 패밀리(gauge)로 변환합니다.

수집 사이클:
    1. 활성 설정 스냅샷 (리로드와 섞이지 않도록 참조 한 번만 읽음)
    2. 규칙별: 태그 조회 → 차원 조회 → DataGetter 선택 → 조합별 값 조회
    3. 표준 통계/확장 통계별 패밀리 생성 (샘플이 있는 통계만)
    4. 태그 매핑별 aws_resource_info 샘플 (ARN 기준 사이클당 1회)
    5. 수집 시간/에러 패밀리는 항상 마지막에 추가

에러 처리:
    - 조합 단위 조회 실패: 해당 조합만 제외 (ErrorCollector 기록)
    - 태그 조회 실패: 해당 규칙은 태그 필터 없이 진행
    - 차원 조회 실패: 해당 규칙 제외, scrape_error = 1
    - 그 외 예외: 사이클 중단, scrape_error = 1 (예외는 전파하지 않음)

Usage:
    from prometheus_client import REGISTRY
    from core.cloudwatch import CloudWatchCollector

    collector = CloudWatchCollector(load_config(path))
    REGISTRY.register(collector)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from prometheus_client.core import Metric

from core.config import ExporterConfig, MetricRule, Statistic, load_config
from core.parallel import ErrorCollector, ErrorSeverity, WorkerPool, build_session, get_client, get_worker_pool
from core.parallel.client import DEFAULT_MAX_POOL_CONNECTIONS
from shared.aws.metrics.batch_metrics import GetMetricDataDataGetter
from shared.aws.metrics.data_getter import DataGetter, GetMetricStatisticsDataGetter, MetricRuleData
from shared.aws.metrics.dimension_cache import CachingDimensionSource
from shared.aws.metrics.dimensions import DefaultDimensionSource, DimensionCombination, DimensionSource
from shared.aws.metrics.instrumentation import RequestCounters, get_default_counters
from shared.aws.metrics.naming import (
    dimension_label_name,
    extended_statistic_suffix,
    job_name,
    metric_base_name,
    safe_label_name,
)
from shared.aws.tags import ResourceTagMapping, TagResolver, extract_resource_id_from_arn

if TYPE_CHECKING:
    import boto3

    from core.config.loader import ConfigSource

logger = logging.getLogger(__name__)

RESOURCE_INFO_NAME = "aws_resource_info"
RESOURCE_INFO_HELP = "AWS information available for resource"
SCRAPE_DURATION_NAME = "cloudwatch_exporter_scrape_duration_seconds"
SCRAPE_DURATION_HELP = "Time this CloudWatch scrape took, in seconds."
SCRAPE_ERROR_NAME = "cloudwatch_exporter_scrape_error"
SCRAPE_ERROR_HELP = "Non-zero if this scrape failed."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ActiveConfig:
    """수집에 사용하는 설정 묶음 (리로드 시 통째로 교체)"""

    config: ExporterConfig
    cloudwatch_client: Any
    tagging_client: Any
    dimension_source: DimensionSource
    tag_resolver: TagResolver
    pool: WorkerPool | None

    @property
    def rules(self) -> tuple[MetricRule, ...]:
        return self.config.rules


class CloudWatchCollector:
    """CloudWatch 메트릭 수집기 (prometheus_client 커스텀 collector)

    Args:
        config: ExporterConfig 또는 load_config()가 받는 설정 소스
        session: boto3 Session (None이면 설정의 region/role_arn으로 생성)
        cloudwatch_client: CloudWatch client (테스트 주입용)
        tagging_client: Resource Groups Tagging API client (테스트 주입용)
        counters: API 요청 카운터 (None이면 전역 REGISTRY 카운터)
        pool: 워커 풀 (None이면 설정의 parallelism으로 전역 풀 사용)
        clock: 현재 시각 함수 (UTC datetime)
    """

    def __init__(
        self,
        config: ExporterConfig | ConfigSource,
        session: boto3.Session | None = None,
        cloudwatch_client: Any = None,
        tagging_client: Any = None,
        counters: RequestCounters | None = None,
        pool: WorkerPool | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._session = session
        self._cloudwatch_client = cloudwatch_client
        self._tagging_client = tagging_client
        self._counters = counters if counters is not None else get_default_counters()
        self._pool = pool
        self._clock = clock or _utc_now
        self._lock = threading.Lock()

        if not isinstance(config, ExporterConfig):
            config = load_config(config)
        self._active = self._build_active(config)

    # =========================================================================
    # 설정
    # =========================================================================

    @property
    def active_config(self) -> ActiveConfig:
        with self._lock:
            return self._active

    def reload(self, source: ExporterConfig | ConfigSource) -> None:
        """설정 리로드

        새 설정의 검증과 클라이언트 생성이 모두 성공한 경우에만 교체합니다.
        실패하면 기존 설정이 그대로 유지되고 예외가 전파됩니다.
        """
        try:
            config = source if isinstance(source, ExporterConfig) else load_config(source)
            active = self._build_active(config)
        except Exception:
            logger.error("설정 리로드 실패, 기존 설정 유지", exc_info=True)
            raise

        with self._lock:
            self._active = active
        logger.info(f"설정 리로드 완료: 규칙 {len(config.rules)}개")

    def _build_active(self, config: ExporterConfig) -> ActiveConfig:
        cloudwatch_client = self._cloudwatch_client
        tagging_client = self._tagging_client
        if cloudwatch_client is None or tagging_client is None:
            session = self._session or build_session(config.region, config.role_arn)
            pool_connections = max(DEFAULT_MAX_POOL_CONNECTIONS, config.parallelism)
            if cloudwatch_client is None:
                cloudwatch_client = get_client(
                    session, "cloudwatch", region_name=config.region, max_pool_connections=pool_connections
                )
            if tagging_client is None:
                tagging_client = get_client(
                    session, "resourcegroupstaggingapi", region_name=config.region, max_pool_connections=pool_connections
                )

        dimension_source: DimensionSource = DefaultDimensionSource(cloudwatch_client, self._counters)
        if config.cache_config.enabled:
            dimension_source = CachingDimensionSource(dimension_source, config.cache_config)
            logger.debug(f"ListMetrics 캐시 사용 (기본 TTL {config.cache_config.default_ttl}s)")

        pool = self._pool if self._pool is not None else get_worker_pool(config.parallelism)

        return ActiveConfig(
            config=config,
            cloudwatch_client=cloudwatch_client,
            tagging_client=tagging_client,
            dimension_source=dimension_source,
            tag_resolver=TagResolver(tagging_client, self._counters),
            pool=pool,
        )

    # =========================================================================
    # prometheus_client collector 프로토콜
    # =========================================================================

    def collect(self) -> Iterator[Metric]:
        yield from self.scrape()

    def describe(self) -> list[Metric]:
        # 등록 시 수집이 실행되지 않도록 빈 목록 반환
        return []

    # =========================================================================
    # 수집
    # =========================================================================

    def scrape(self) -> list[Metric]:
        """수집 사이클 1회 실행

        예외를 전파하지 않으며, 반환 목록의 마지막 두 항목은 항상
        수집 시간과 수집 에러 패밀리입니다.
        """
        start = time.perf_counter()
        families: list[Metric] = []
        error = 0.0

        try:
            if not self._scrape(families):
                error = 1.0
        except Exception:
            error = 1.0
            logger.warning("CloudWatch 수집 실패", exc_info=True)

        duration = Metric(SCRAPE_DURATION_NAME, SCRAPE_DURATION_HELP, "gauge")
        duration.add_sample(SCRAPE_DURATION_NAME, {}, time.perf_counter() - start)
        families.append(duration)

        scrape_error = Metric(SCRAPE_ERROR_NAME, SCRAPE_ERROR_HELP, "gauge")
        scrape_error.add_sample(SCRAPE_ERROR_NAME, {}, error)
        families.append(scrape_error)

        return families

    def _scrape(self, families: list[Metric]) -> bool:
        """규칙 전체 수집

        Returns:
            CRITICAL 에러(규칙 차원 조회 실패)가 없었으면 True
        """
        active = self.active_config
        errors = ErrorCollector("cloudwatch")
        published_arns: set[str] = set()
        resource_info = Metric(RESOURCE_INFO_NAME, RESOURCE_INFO_HELP, "gauge")

        for rule in active.rules:
            mappings, tag_based_resource_ids = self._resolve_tags(active, rule, errors)

            try:
                dimension_list = active.dimension_source.get_dimensions(rule, tag_based_resource_ids).dimensions
            except (ClientError, BotoCoreError) as e:
                errors.collect(e, "ListMetrics", rule.aws_namespace, str(rule), ErrorSeverity.CRITICAL)
                continue

            families.extend(self._rule_families(active, rule, dimension_list, errors))
            self._add_resource_info(resource_info, rule, mappings, published_arns)

        families.append(resource_info)

        if errors.has_errors:
            logger.warning(f"CloudWatch 수집 중 {errors.get_summary()}")
        return not errors.critical_errors

    def _resolve_tags(
        self,
        active: ActiveConfig,
        rule: MetricRule,
        errors: ErrorCollector,
    ) -> tuple[list[ResourceTagMapping], list[str] | None]:
        """태그 매핑 조회 (실패 시 이 사이클은 태그 필터 없이 진행)"""
        try:
            return active.tag_resolver.resolve(rule)
        except (ClientError, BotoCoreError) as e:
            resource_type = rule.aws_tag_select.resource_type_selection if rule.aws_tag_select else ""
            errors.collect(e, "GetResources", resource_type, str(rule))
            return [], None

    def _data_getter(
        self,
        active: ActiveConfig,
        rule: MetricRule,
        dimension_list: list[DimensionCombination],
        errors: ErrorCollector,
    ) -> DataGetter:
        now = self._clock()
        if rule.use_get_metric_data:
            return GetMetricDataDataGetter(
                active.cloudwatch_client, now, rule, self._counters, dimension_list, errors=errors
            )
        return GetMetricStatisticsDataGetter(
            active.cloudwatch_client, now, rule, self._counters, dimension_list, pool=active.pool, errors=errors
        )

    def _rule_families(
        self,
        active: ActiveConfig,
        rule: MetricRule,
        dimension_list: list[DimensionCombination],
        errors: ErrorCollector,
    ) -> list[Metric]:
        """규칙 하나의 메트릭 패밀리 생성 (샘플이 있는 통계만)"""
        if not dimension_list:
            return []

        data_getter = self._data_getter(active, rule, dimension_list, errors)
        base_name = metric_base_name(rule)
        job = job_name(rule.aws_namespace)

        base_samples: dict[Statistic, list[tuple[dict[str, str], float, float | None]]] = {s: [] for s in Statistic}
        extended_samples: dict[str, list[tuple[dict[str, str], float, float | None]]] = {}
        unit: str | None = None

        for combination in dimension_list:
            values = data_getter.metric_rule_data_for(combination)
            if values is None:
                continue
            unit = values.unit
            labels = _labels(job, combination)
            timestamp = _timestamp(rule, values)

            for statistic, value in values.statistic_values.items():
                base_samples[statistic].append((labels, value, timestamp))
            for name, value in values.extended_values.items():
                extended_samples.setdefault(name, []).append((labels, value, timestamp))

        families: list[Metric] = []
        for statistic in Statistic:
            samples = base_samples[statistic]
            if samples:
                families.append(_family(base_name + statistic.suffix, _help(rule, unit, statistic.value), samples))
        for name, samples in extended_samples.items():
            families.append(_family(base_name + extended_statistic_suffix(name), _help(rule, unit, name), samples))
        return families

    def _add_resource_info(
        self,
        resource_info: Metric,
        rule: MetricRule,
        mappings: list[ResourceTagMapping],
        published_arns: set[str],
    ) -> None:
        tag_select = rule.aws_tag_select
        if tag_select is None:
            return

        job = job_name(rule.aws_namespace)
        id_label = dimension_label_name(tag_select.resource_id_dimension)
        for mapping in mappings:
            if mapping.arn in published_arns:
                continue

            labels = {"job": job, "instance": "", "arn": mapping.arn}
            _add_label(labels, id_label, extract_resource_id_from_arn(mapping.arn, tag_select.arn_regexp))
            # 태그 키는 대소문자를 구분하므로 snake_case 변환 없이 접두사만 추가
            for key, value in mapping.tags.items():
                labels["tag_" + safe_label_name(key)] = value

            resource_info.add_sample(RESOURCE_INFO_NAME, labels, 1)
            published_arns.add(mapping.arn)


def _labels(job: str, combination: DimensionCombination) -> dict[str, str]:
    labels = {"job": job, "instance": ""}
    for name, value in combination:
        _add_label(labels, dimension_label_name(name), value)
    return labels


def _add_label(labels: dict[str, str], name: str, value: str) -> None:
    """차원 라벨 추가

    job / instance / arn 처럼 이미 있는 고정 라벨과 이름이 겹치면
    고정 라벨을 유지하고 차원 값은 exported_ 접두사 라벨로 보냅니다.
    """
    if name in labels:
        logger.debug(f"라벨 이름 충돌: {name} -> exported_{name}")
        name = "exported_" + name
    labels[name] = value


def _timestamp(rule: MetricRule, values: MetricRuleData) -> float | None:
    """샘플 타임스탬프 (초 단위, set_timestamp 가 꺼져 있으면 None)"""
    if not rule.set_timestamp:
        return None
    return values.timestamp.timestamp()


def _help(rule: MetricRule, unit: str | None, statistic: str) -> str:
    if rule.help is not None:
        return rule.help
    dimensions = "[" + ", ".join(rule.aws_dimensions) + "]"
    return (
        f"CloudWatch metric {rule.aws_namespace} {rule.aws_metric_name} "
        f"Dimensions: {dimensions} Statistic: {statistic} Unit: {unit}"
    )


def _family(
    name: str,
    documentation: str,
    samples: list[tuple[dict[str, str], float, float | None]],
) -> Metric:
    family = Metric(name, documentation, "gauge")
    for labels, value, timestamp in samples:
        family.add_sample(name, labels, value, timestamp)
    return family
