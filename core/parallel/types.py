"""
core/parallel/types.py - 병렬 처리 공통 타입

주요 구성 요소:
- ErrorCategory: AWS API 에러 분류
- TaskOutcome: 워커 풀 작업 하나의 결과 (값 또는 예외)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCategory(Enum):
    """AWS API 에러 카테고리"""

    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    THROTTLING = "throttling"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    SERVICE_ERROR = "service_error"
    NETWORK = "network"
    UNKNOWN = "unknown"


@dataclass
class TaskOutcome(Generic[T]):
    """워커 풀 작업 결과

    성공 시 value, 실패 시 error가 설정됩니다.
    실패한 작업을 호출자가 어떻게 처리할지 결정할 수 있도록
    예외를 발생시키지 않고 담아서 반환합니다.
    """

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
