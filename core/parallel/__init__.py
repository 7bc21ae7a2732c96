"""
core/parallel - 병렬 처리 모듈

CloudWatch / Tagging API 호출을 공유 워커 풀에서 병렬로 처리합니다.

주요 구성 요소:
- WorkerPool: 프로세스 전역 ThreadPoolExecutor 래퍼
- get_client / build_session: retry/타임아웃이 설정된 boto3 클라이언트
- ErrorCollector: 조합 단위 API 에러 수집

Example:
    from core.parallel import ErrorCollector, get_worker_pool

    pool = get_worker_pool(max_workers=10)
    errors = ErrorCollector("cloudwatch")
    outcomes = pool.map_ordered(fetch_one, combinations)
"""

from .client import build_session, get_client
from .errors import (
    CollectedError,
    ErrorCollector,
    ErrorSeverity,
    categorize_error,
    categorize_error_code,
)
from .executor import WorkerPool, get_worker_pool, shutdown_worker_pool
from .types import ErrorCategory, TaskOutcome

__all__: list[str] = [
    # Executor
    "WorkerPool",
    "get_worker_pool",
    "shutdown_worker_pool",
    # Client
    "build_session",
    "get_client",
    # Error handling
    "ErrorCollector",
    "ErrorSeverity",
    "CollectedError",
    "categorize_error",
    "categorize_error_code",
    # Types
    "ErrorCategory",
    "TaskOutcome",
]
