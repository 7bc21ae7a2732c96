"""
tests/shared/aws/metrics/test_dimension_cache.py - ListMetrics TTL 캐시 테스트
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from shared.aws.metrics.dimension_cache import (
    CacheStats,
    CachingDimensionSource,
    DimensionCacheConfig,
    DimensionCacheKey,
)
from shared.aws.metrics.dimensions import DimensionData, DimensionSource


class FakeClock:
    """수동으로 진행하는 시계"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def delegate():
    source = MagicMock(spec=DimensionSource)
    source.get_dimensions.return_value = DimensionData([(("LoadBalancerName", "lb1"),)])
    return source


@pytest.fixture
def clock():
    return FakeClock()


class TestCacheStats:
    """CacheStats 테스트"""

    def test_initial_state(self):
        """초기 상태 확인"""
        stats = CacheStats()
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.hit_rate == 0.0

    def test_hit_rate_calculation(self):
        """히트율 계산"""
        stats = CacheStats(hits=3, misses=7)
        assert stats.hit_rate == 0.3


class TestDimensionCacheConfig:
    """TTL 설정 테스트"""

    def test_default_ttl(self, make_rule):
        config = DimensionCacheConfig(default_ttl=600)
        assert config.get_ttl(make_rule()) == 600
        assert config.enabled

    def test_override_by_rule_identity(self, make_rule):
        """override 는 규칙 객체 기준 (같은 값의 다른 규칙에는 적용 안 됨)"""
        rule = make_rule(list_metrics_cache_ttl=30)
        twin = make_rule(list_metrics_cache_ttl=30)
        config = DimensionCacheConfig(default_ttl=0)
        config.add_override(rule)

        assert config.get_ttl(rule) == 30
        assert config.get_ttl(twin) == 0

    def test_disabled_without_ttl(self):
        """기본 TTL 0 + override 없음 → 캐시 불필요"""
        assert not DimensionCacheConfig(default_ttl=0).enabled

    def test_enabled_by_override(self, make_rule):
        config = DimensionCacheConfig(default_ttl=0)
        config.add_override(make_rule(list_metrics_cache_ttl=60))
        assert config.enabled


class TestCachingDimensionSource:
    """CachingDimensionSource 테스트"""

    def test_hit_within_ttl_and_miss_after(self, delegate, clock, make_rule):
        """TTL 600초: 10초 후 히트, 601초 후 미스"""
        rule = make_rule(aws_dimensions=("LoadBalancerName",))
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock)

        first = source.get_dimensions(rule, None)
        clock.advance(10)
        second = source.get_dimensions(rule, None)

        assert delegate.get_dimensions.call_count == 1
        assert second is first

        clock.advance(591)
        source.get_dimensions(rule, None)
        assert delegate.get_dimensions.call_count == 2
        assert source.stats.hits == 1
        assert source.stats.misses == 2

    def test_zero_ttl_always_calls_through(self, delegate, clock, make_rule):
        """TTL 0 은 캐시하지 않음"""
        rule = make_rule(aws_dimensions=("LoadBalancerName",))
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=0), clock=clock)

        source.get_dimensions(rule, None)
        source.get_dimensions(rule, None)

        assert delegate.get_dimensions.call_count == 2
        assert source.size() == 0

    def test_rule_override_ttl(self, delegate, clock, make_rule):
        """규칙별 TTL이 기본 TTL보다 우선"""
        rule = make_rule(aws_dimensions=("LoadBalancerName",), list_metrics_cache_ttl=5)
        config = DimensionCacheConfig(default_ttl=600)
        config.add_override(rule)
        source = CachingDimensionSource(delegate, config, clock=clock)

        source.get_dimensions(rule, None)
        clock.advance(6)
        source.get_dimensions(rule, None)

        assert delegate.get_dimensions.call_count == 2

    def test_shared_entry_for_identical_keys(self, delegate, clock, make_rule):
        """조회 조건이 같은 규칙끼리는 캐시 항목 공유"""
        sum_rule = make_rule(aws_dimensions=("LoadBalancerName",))
        other_rule = make_rule(aws_dimensions=("LoadBalancerName",))
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock)

        source.get_dimensions(sum_rule, None)
        source.get_dimensions(other_rule, None)

        assert delegate.get_dimensions.call_count == 1

    def test_different_resource_ids_are_separate_entries(self, delegate, clock, make_rule):
        """태그 기반 리소스 ID가 다르면 별도 항목"""
        rule = make_rule(aws_dimensions=("InstanceId",))
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock)

        source.get_dimensions(rule, ["i-1"])
        source.get_dimensions(rule, ["i-2"])
        source.get_dimensions(rule, ["i-1"])

        assert delegate.get_dimensions.call_count == 2

    def test_lru_eviction(self, delegate, clock, make_rule):
        """최대 항목 수 초과 시 가장 오래된 항목 제거"""
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock, max_entries=2)

        for metric in ("A", "B", "C"):
            source.get_dimensions(make_rule(aws_metric_name=metric), None)

        assert source.size() == 2
        assert source.stats.evictions == 1

        source.get_dimensions(make_rule(aws_metric_name="A"), None)
        assert delegate.get_dimensions.call_count == 4

    def test_delegate_error_not_cached(self, delegate, clock, make_rule):
        """원본 조회 실패는 전파되고 캐시되지 않음"""
        delegate.get_dimensions.side_effect = [RuntimeError("boom"), DimensionData([])]
        rule = make_rule()
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock)

        with pytest.raises(RuntimeError):
            source.get_dimensions(rule, None)
        assert source.get_dimensions(rule, None).dimensions == []

    def test_concurrent_refresh(self, clock, make_rule):
        """동시 갱신 시에도 맵이 손상되지 않음"""
        barrier = threading.Barrier(4)
        delegate = MagicMock(spec=DimensionSource)

        def slow_lookup(rule, ids):
            barrier.wait(timeout=5)
            return DimensionData([(("LoadBalancerName", "lb1"),)])

        delegate.get_dimensions.side_effect = slow_lookup
        rule = make_rule(aws_dimensions=("LoadBalancerName",))
        source = CachingDimensionSource(delegate, DimensionCacheConfig(default_ttl=600), clock=clock)

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda _: source.get_dimensions(rule, None), range(4)))

        assert all(len(r) == 1 for r in results)
        assert source.size() == 1


class TestDimensionCacheKey:
    """캐시 키 테스트"""

    def test_value_equality(self, make_rule):
        a = DimensionCacheKey.for_rule(make_rule(aws_dimensions=("X",)), ["b", "a"])
        b = DimensionCacheKey.for_rule(make_rule(aws_dimensions=("X",)), ["a", "b"])
        assert a == b
        assert hash(a) == hash(b)

    def test_filters_distinguish_keys(self, make_rule):
        plain = DimensionCacheKey.for_rule(make_rule(aws_dimensions=("X",)), None)
        selected = DimensionCacheKey.for_rule(
            make_rule(aws_dimensions=("X",), aws_dimension_select={"X": ["1"]}), None
        )
        assert plain != selected
