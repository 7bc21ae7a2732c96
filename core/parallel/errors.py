"""
core/parallel/errors.py - 스크레이프 단위 API 에러 수집

한 번의 수집 사이클 동안 워커 스레드에서 발생한 조회 실패를 모읍니다.
조합 하나, 배치 하나의 실패는 규칙이나 사이클을 중단시키지 않고
"값 없음"으로 처리되므로, 실패 내역은 여기서 분류/로깅하고
사이클 종료 시 collector가 요약 한 줄을 남깁니다.

심각도:
    CRITICAL  규칙 전체를 건너뜀 (ListMetrics 실패) -> scrape_error = 1
    WARNING   조합/배치 단위 실패, 태그 조회 실패
    INFO      권한 없음 (WARNING으로 수집해도 자동으로 낮춤)

Example:
    errors = ErrorCollector("cloudwatch")
    try:
        client.get_metric_statistics(**params)
    except ClientError as e:
        errors.collect(e, "GetMetricStatistics", "AWS/ELB", "RequestCount[LoadBalancerName=lb1]")

    if errors.has_errors:
        logger.warning(errors.get_summary())
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from core.exceptions import get_error_code, is_access_denied, is_not_found, is_throttling

from .types import ErrorCategory

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """수집된 에러의 심각도 (로그 레벨 결정)"""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"


_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.ERROR,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.DEBUG: logging.DEBUG,
}

# 에러 코드(소문자)에 포함된 키워드로 분류, 위에서부터 먼저 일치하는 항목 사용
_CODE_KEYWORDS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.ACCESS_DENIED, ("accessdenied", "unauthorized", "forbidden")),
    (ErrorCategory.NOT_FOUND, ("notfound", "nosuch", "doesnotexist")),
    (ErrorCategory.THROTTLING, ("throttl", "ratelimit", "toomanyrequests", "limitexceeded")),
    (ErrorCategory.TIMEOUT, ("timeout", "timedout")),
    (ErrorCategory.INVALID_REQUEST, ("invalid", "validation", "malformed")),
    (ErrorCategory.SERVICE_ERROR, ("internal", "serviceunavailable", "serviceerror")),
)


@dataclass(frozen=True)
class CollectedError:
    """수집된 에러 하나

    Attributes:
        service: 클라이언트 서비스 (cloudwatch, tagging)
        operation: API 이름 (ListMetrics, GetMetricStatistics, GetMetricData, GetResources)
        namespace: CloudWatch 네임스페이스 또는 Tagging 리소스 타입
        error_code: AWS 에러 코드 (ClientError가 아니면 예외 클래스 이름)
        error_message: 에러 메시지
        severity: 심각도
        category: 분류
        resource_id: 규칙/차원 조합 식별 문자열
        timestamp: 수집 시각 (UTC)
    """

    service: str
    operation: str
    namespace: str
    error_code: str
    error_message: str
    severity: ErrorSeverity
    category: ErrorCategory
    resource_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        target = self.namespace if not self.resource_id else f"{self.namespace} {self.resource_id}"
        return f"[{self.severity.name}] {target} - {self.service}.{self.operation}: {self.error_code}"

    def to_dict(self) -> dict[str, str | None]:
        return {
            "service": self.service,
            "operation": self.operation,
            "namespace": self.namespace,
            "resource_id": self.resource_id,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
        }


def categorize_error_code(error_code: str) -> ErrorCategory:
    """에러 코드 문자열 분류 (일치하는 키워드가 없으면 UNKNOWN)"""
    code = error_code.lower()
    for category, keywords in _CODE_KEYWORDS:
        if any(keyword in code for keyword in keywords):
            return category
    return ErrorCategory.UNKNOWN


def categorize_error(error: BaseException) -> ErrorCategory:
    """예외 분류

    ClientError는 응답의 에러 코드로, botocore 네트워크 예외는 타입으로 분류합니다.
    """
    if is_throttling(error):
        return ErrorCategory.THROTTLING
    if is_access_denied(error):
        return ErrorCategory.ACCESS_DENIED
    if is_not_found(error):
        return ErrorCategory.NOT_FOUND
    if getattr(error, "response", None) is not None:
        return categorize_error_code(get_error_code(error))

    # botocore ReadTimeoutError 는 OSError 계열이기도 하므로 타임아웃을 먼저 확인
    name = type(error).__name__
    if isinstance(error, TimeoutError) or "Timeout" in name:
        return ErrorCategory.TIMEOUT
    if isinstance(error, OSError) or "Connection" in name or "Endpoint" in name:
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


class ErrorCollector:
    """스레드 세이프 에러 수집기 (수집 사이클마다 새로 생성)

    Args:
        service: 수집된 에러에 공통으로 붙는 서비스 이름
    """

    def __init__(self, service: str):
        self.service = service
        self._errors: list[CollectedError] = []
        self._lock = threading.Lock()

    def collect(
        self,
        error: BaseException,
        operation: str,
        namespace: str,
        resource_id: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> CollectedError:
        """예외 기록 및 심각도에 맞는 레벨로 로깅

        Args:
            error: ClientError, BotoCoreError 등
            operation: API 이름
            namespace: CloudWatch 네임스페이스 또는 리소스 타입
            resource_id: 규칙/차원 조합 식별 문자열
            severity: 심각도 (권한 없음 + WARNING 이면 INFO로 낮춤)
        """
        category = categorize_error(error)
        if category is ErrorCategory.ACCESS_DENIED and severity is ErrorSeverity.WARNING:
            severity = ErrorSeverity.INFO

        error_info = getattr(error, "response", None)
        if isinstance(error_info, dict):
            error_message = error_info.get("Error", {}).get("Message", str(error))
        else:
            error_message = str(error)

        collected = CollectedError(
            service=self.service,
            operation=operation,
            namespace=namespace,
            error_code=get_error_code(error),
            error_message=error_message,
            severity=severity,
            category=category,
            resource_id=resource_id,
        )
        with self._lock:
            self._errors.append(collected)

        logger.log(_LOG_LEVELS[severity], str(collected))
        return collected

    @property
    def errors(self) -> list[CollectedError]:
        with self._lock:
            return list(self._errors)

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return bool(self._errors)

    @property
    def critical_errors(self) -> list[CollectedError]:
        return [e for e in self.errors if e.severity is ErrorSeverity.CRITICAL]

    def get_summary(self) -> str:
        """심각도별 건수 요약 (예: "에러 3건 (critical: 1건, warning: 2건)")"""
        errors = self.errors
        if not errors:
            return "에러 없음"

        counts = Counter(e.severity.value for e in errors)
        parts = ", ".join(f"{severity}: {count}건" for severity, count in sorted(counts.items()))
        return f"에러 {len(errors)}건 ({parts})"
