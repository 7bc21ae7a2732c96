"""
core/parallel/executor.py - 공유 워커 풀

CloudWatch / Tagging API 호출을 병렬로 처리하는 프로세스 전역 워커 풀입니다.
ThreadPoolExecutor 기반이며, 설정 로드 시 한 번 생성되고 프로세스 종료 시 정리됩니다.

주요 구성 요소:
- WorkerPool: 크기가 제한된 ThreadPoolExecutor 래퍼
- get_worker_pool / shutdown_worker_pool: 프로세스 전역 풀 관리

Example:
    from core.parallel import get_worker_pool

    pool = get_worker_pool(max_workers=10)
    outcomes = pool.map_ordered(fetch_one, combinations)

    for combination, outcome in zip(combinations, outcomes):
        if outcome.ok:
            handle(outcome.value)
"""

from __future__ import annotations

import atexit
import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

from .types import TaskOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_WORKERS = 10
MAX_WORKERS_LIMIT = 100

_global_pool: WorkerPool | None = None
_global_pool_lock = threading.Lock()


class WorkerPool:
    """크기가 제한된 스레드 워커 풀

    Attributes:
        max_workers: 최대 동시 스레드 수 (1~100)
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = min(max_workers, MAX_WORKERS_LIMIT)
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="cloudwatch-worker",
        )
        self._closed = False

    def map_ordered(self, func: Callable[[T], R], items: Iterable[T]) -> list[TaskOutcome[R]]:
        """모든 항목을 병렬 실행하고 입력 순서대로 결과 반환

        개별 항목의 예외는 발생시키지 않고 TaskOutcome.error 에 담습니다.
        이미 종료된 풀이면 제출에 실패한 항목도 TaskOutcome.error 로 반환합니다.

        Args:
            func: 항목 하나를 처리하는 함수
            items: 처리할 항목 목록

        Returns:
            입력 순서와 동일한 TaskOutcome 목록
        """
        pending: list[Future[R] | TaskOutcome[R]] = []
        for item in items:
            try:
                pending.append(self._executor.submit(func, item))
            except RuntimeError as e:
                # cannot schedule new futures after shutdown
                pending.append(TaskOutcome(error=e))

        outcomes: list[TaskOutcome[R]] = []
        for future in pending:
            if isinstance(future, TaskOutcome):
                outcomes.append(future)
                continue
            try:
                outcomes.append(TaskOutcome(value=future.result()))
            except Exception as e:
                outcomes.append(TaskOutcome(error=e))
        return outcomes

    def shutdown(self, wait: bool = True) -> None:
        """풀 종료 (진행 중인 작업은 wait=True 이면 완료까지 대기)"""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.debug(f"WorkerPool 종료 (max_workers={self.max_workers})")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()


def get_worker_pool(max_workers: int = DEFAULT_MAX_WORKERS) -> WorkerPool:
    """프로세스 전역 워커 풀 반환

    풀이 없거나 요청 크기가 달라진 경우(설정 리로드)에만 새로 생성합니다.
    기존 풀은 종료하지 않습니다. 리로드 전에 시작된 수집 사이클이 스냅샷으로
    계속 사용하며, 마지막 참조가 사라지면 유휴 스레드도 함께 정리됩니다.

    Args:
        max_workers: 워커 수 (설정의 parallelism)

    Returns:
        WorkerPool 인스턴스
    """
    global _global_pool
    with _global_pool_lock:
        wanted = min(max(max_workers, 1), MAX_WORKERS_LIMIT)
        if _global_pool is not None and not _global_pool.closed and _global_pool.max_workers == wanted:
            return _global_pool

        _global_pool = WorkerPool(wanted)
        logger.info(f"WorkerPool 생성: max_workers={wanted}")
        return _global_pool


def shutdown_worker_pool() -> None:
    """프로세스 전역 워커 풀 종료"""
    global _global_pool
    with _global_pool_lock:
        pool = _global_pool
        _global_pool = None
    if pool is not None:
        pool.shutdown()


atexit.register(shutdown_worker_pool)
