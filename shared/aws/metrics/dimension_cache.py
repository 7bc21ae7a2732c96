"""
shared/aws/metrics/dimension_cache.py - ListMetrics 결과 TTL 캐시

ListMetrics 조회는 규칙 수 × 페이지 수만큼 API를 호출하므로,
같은 조회 조건의 결과를 TTL 동안 재사용합니다.

구성:
- DimensionCacheConfig: 전역 기본 TTL + 규칙별 TTL override (설정 로드 시 등록)
- DimensionCacheKey: (네임스페이스, 메트릭 이름, 차원 이름 목록, 필터 설명)
- CachingDimensionSource: DimensionSource 데코레이터 (스레드 안전, LRU 지원)
- CacheStats: 히트/미스/갱신/eviction 통계

동작:
    - 항목이 없거나 경과 시간이 TTL을 초과하면 원본 소스를 호출해 교체
    - 그 외에는 캐시된 목록을 그대로 반환
    - TTL 0 은 캐시하지 않음 (항상 원본 소스 호출)
    - 같은 키를 여러 스레드가 동시에 갱신할 수 있으며, 마지막 쓰기가 유지됨
      (Lock은 딕셔너리 접근 순간에만 잡고 API 호출 중에는 잡지 않음)

Usage:
    cache_config = DimensionCacheConfig(default_ttl=600)
    cache_config.add_override(rule)  # rule.list_metrics_cache_ttl 사용

    source = CachingDimensionSource(DefaultDimensionSource(cw), cache_config)
    data = source.get_dimensions(rule, None)
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .dimensions import DimensionData, DimensionSource

if TYPE_CHECKING:
    from core.config.rules import MetricRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10000


# =============================================================================
# 캐시 통계
# =============================================================================


@dataclass
class CacheStats:
    """캐시 통계 (스레드 안전)

    Attributes:
        hits: 캐시 히트 횟수
        misses: 캐시 미스 횟수 (갱신 포함)
        sets: 캐시 저장 횟수
        evictions: LRU eviction 횟수
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """캐시 히트율 (0.0 ~ 1.0)"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def add_hit(self, count: int = 1) -> None:
        with self._lock:
            self.hits += count

    def add_miss(self, count: int = 1) -> None:
        with self._lock:
            self.misses += count

    def add_set(self, count: int = 1) -> None:
        with self._lock:
            self.sets += count

    def add_eviction(self, count: int = 1) -> None:
        with self._lock:
            self.evictions += count

    def summary(self) -> str:
        """통계 요약 문자열"""
        return f"hits={self.hits}, misses={self.misses}, hit_rate={self.hit_rate:.1%}, evictions={self.evictions}"


# =============================================================================
# 캐시 설정
# =============================================================================


class DimensionCacheConfig:
    """ListMetrics 캐시 TTL 설정

    규칙별 override는 설정 로드 시 한 번 등록되며,
    조회 시에는 규칙 객체 동일성으로 찾습니다.

    Args:
        default_ttl: 전역 기본 TTL (초)
    """

    def __init__(self, default_ttl: float = 0):
        self.default_ttl = default_ttl
        self._overrides: dict[MetricRule, float] = {}

    def add_override(self, rule: MetricRule, ttl: float | None = None) -> None:
        """규칙별 TTL 등록 (ttl 생략 시 rule.list_metrics_cache_ttl)"""
        self._overrides[rule] = rule.list_metrics_cache_ttl if ttl is None else ttl

    def get_ttl(self, rule: MetricRule) -> float:
        """규칙에 적용할 TTL (초)"""
        return self._overrides.get(rule, self.default_ttl)

    @property
    def has_overrides(self) -> bool:
        return bool(self._overrides)

    @property
    def enabled(self) -> bool:
        """캐시 데코레이터를 설치할 필요가 있는지 여부"""
        return self.default_ttl > 0 or self.has_overrides


@dataclass(frozen=True)
class DimensionCacheKey:
    """캐시 키 (값 동일성 기준)

    같은 조회 조건을 가진 규칙끼리는 캐시 항목을 공유합니다.
    """

    namespace: str
    metric_name: str
    dimensions: tuple[str, ...]
    filters: str

    @classmethod
    def for_rule(cls, rule: MetricRule, tag_based_resource_ids: Sequence[str] | None) -> DimensionCacheKey:
        return cls(
            namespace=rule.aws_namespace,
            metric_name=rule.aws_metric_name,
            dimensions=tuple(rule.aws_dimensions),
            filters=describe_filters(rule, tag_based_resource_ids),
        )


def describe_filters(rule: MetricRule, tag_based_resource_ids: Sequence[str] | None) -> str:
    """조회 결과에 영향을 주는 필터를 안정적인 문자열로 표현"""
    parts: list[str] = []

    if rule.aws_dimension_select is not None:
        items = sorted((k, tuple(sorted(v))) for k, v in rule.aws_dimension_select.items())
        parts.append(f"select={items}")
    if rule.aws_dimension_select_regex is not None:
        items_re = sorted((k, tuple(p.pattern for p in v)) for k, v in rule.aws_dimension_select_regex.items())
        parts.append(f"select_regex={items_re}")
    if rule.aws_tag_select is not None:
        tag_select = rule.aws_tag_select
        parts.append(f"tag_select={tag_select.resource_type_selection}:{tag_select.resource_id_dimension}")
        if tag_select.tag_selections is not None:
            selections = sorted(
                (k, tuple(sorted(v)) if v is not None else None) for k, v in tag_select.tag_selections.items()
            )
            parts.append(f"tags={selections}")
    if tag_based_resource_ids is not None:
        parts.append(f"ids={sorted(set(tag_based_resource_ids))}")
    if rule.range_seconds < 3 * 60 * 60:
        parts.append("recent")

    return ";".join(parts)


@dataclass
class _CacheEntry:
    data: DimensionData
    fetched_at: float


# =============================================================================
# CachingDimensionSource
# =============================================================================


class CachingDimensionSource(DimensionSource):
    """TTL 캐시를 적용한 DimensionSource 데코레이터

    Args:
        delegate: 실제 조회를 수행하는 DimensionSource
        config: TTL 설정
        clock: 현재 시각 함수 (초, 기본 time.monotonic)
        max_entries: 최대 캐시 항목 수 (0이면 무제한)
    """

    def __init__(
        self,
        delegate: DimensionSource,
        config: DimensionCacheConfig,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.delegate = delegate
        self.config = config
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[DimensionCacheKey, _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        """캐시 통계 반환"""
        return self._stats

    def size(self) -> int:
        """현재 캐시 크기 반환"""
        with self._lock:
            return len(self._entries)

    def get_dimensions(
        self,
        rule: MetricRule,
        tag_based_resource_ids: Sequence[str] | None,
    ) -> DimensionData:
        ttl = self.config.get_ttl(rule)
        if ttl <= 0:
            return self.delegate.get_dimensions(rule, tag_based_resource_ids)

        key = DimensionCacheKey.for_rule(rule, tag_based_resource_ids)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.fetched_at <= ttl:
                self._entries.move_to_end(key)
                self._stats.add_hit()
                return entry.data

        self._stats.add_miss()
        logger.debug(f"ListMetrics 캐시 갱신: {rule} (ttl={ttl}s)")

        # API 호출 중에는 Lock을 잡지 않음
        data = self.delegate.get_dimensions(rule, tag_based_resource_ids)

        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            else:
                self._evict_if_needed()
            self._entries[key] = _CacheEntry(data=data, fetched_at=self._clock())

        self._stats.add_set()
        return data

    def _evict_if_needed(self) -> None:
        """LRU eviction (Lock 내부에서 호출)"""
        if self._max_entries <= 0:
            return

        evicted = 0
        while len(self._entries) >= self._max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        if evicted:
            self._stats.add_eviction(evicted)

    def clear(self) -> None:
        """캐시 전체 삭제"""
        with self._lock:
            self._entries.clear()
