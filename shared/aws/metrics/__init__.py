"""CloudWatch 메트릭 수집 구성 요소.

하위 모듈:
- naming: Prometheus 메트릭/레이블 이름 변환
- dimensions: ListMetrics 기반 차원 조합 조회
- dimension_cache: 차원 조회 TTL 캐시
- data_getter: GetMetricStatistics 조회 + 공통 결과 타입
- batch_metrics: GetMetricData 배치 조회
- instrumentation: API 요청 카운터
"""

from .batch_metrics import GetMetricDataDataGetter
from .data_getter import DataGetter, GetMetricStatisticsDataGetter, MetricRuleData
from .dimension_cache import CacheStats, CachingDimensionSource, DimensionCacheConfig
from .dimensions import DefaultDimensionSource, DimensionCombination, DimensionData, DimensionSource
from .instrumentation import NoopRequestCounters, PrometheusRequestCounters, RequestCounters

__all__ = [
    # Dimensions
    "DimensionSource",
    "DefaultDimensionSource",
    "CachingDimensionSource",
    "DimensionCacheConfig",
    "DimensionCombination",
    "DimensionData",
    "CacheStats",
    # Data getters
    "DataGetter",
    "MetricRuleData",
    "GetMetricStatisticsDataGetter",
    "GetMetricDataDataGetter",
    # Counters
    "RequestCounters",
    "NoopRequestCounters",
    "PrometheusRequestCounters",
]
