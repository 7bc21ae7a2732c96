"""
core/exceptions.py - Exporter 예외 및 AWS 에러 코드 헬퍼

설정 로드와 AWS 호출에서 발생하는 예외를 정의합니다.
수집 사이클 안의 API 실패는 예외로 올리지 않고 ErrorCollector에 기록하므로,
여기 정의된 예외는 주로 설정 로드/리로드와 클라이언트 생성 시점에 사용됩니다.

    ExporterError
    ├── ConfigError         설정 파일 구조 오류 (필수 항목 누락, 상호 배타 옵션)
    │   └── ValidationError 값 하나의 타입/범위 오류
    └── APICallError        STS / CloudWatch / Tagging API 호출 실패

Usage:
    from core.exceptions import APICallError, is_throttling

    try:
        sts.assume_role(RoleArn=role_arn, RoleSessionName="cloudwatch_exporter")
    except ClientError as e:
        raise APICallError.from_client_error("sts", "AssumeRole", e) from e
"""

from __future__ import annotations

from typing import Any


class ExporterError(Exception):
    """CloudWatch Exporter 예외 베이스

    Attributes:
        message: 에러 메시지
        cause: 원인 예외
        details: 로그/직렬화용 부가 정보
    """

    def __init__(self, message: str, cause: Exception | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details: dict[str, Any] = dict(details) if details else {}

    def __str__(self) -> str:
        return f"{self.message}: {self.cause}" if self.cause else self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "cause": None if self.cause is None else str(self.cause),
            "details": self.details,
        }


# =============================================================================
# 설정
# =============================================================================


class ConfigError(ExporterError):
    """설정 오류

    load_config() 에서 발생하며, 발생한 설정은 일부도 적용되지 않습니다.
    리로드 중이면 기존 설정이 유지됩니다.
    """

    def __init__(self, key: str, message: str, cause: Exception | None = None):
        super().__init__(f"설정 오류 [{key}]: {message}", cause, {"config_key": key})
        self.config_key = key


class ValidationError(ConfigError):
    """설정 값 하나의 타입/범위 오류 (예: period_seconds 가 문자열)"""

    def __init__(self, field: str, value: Any, expected: str, cause: Exception | None = None):
        super().__init__(field, f"{expected} 값이 필요합니다 (입력값: {value!r})", cause)
        self.field = field
        self.value = value
        self.expected = expected
        self.details["value"] = repr(value)
        self.details["expected"] = expected


# =============================================================================
# AWS API
# =============================================================================


class APICallError(ExporterError):
    """AWS API 호출 실패

    Args:
        service: 서비스 이름 (sts, cloudwatch, resourcegroupstaggingapi)
        operation: API 이름 (AssumeRole, ListMetrics 등)
        error_code: AWS 에러 코드
        error_message: AWS 에러 메시지
        cause: 원본 ClientError
    """

    def __init__(
        self,
        service: str,
        operation: str,
        error_code: str | None = None,
        error_message: str | None = None,
        cause: Exception | None = None,
    ):
        parts = [f"{service}.{operation}"]
        if error_code:
            parts.append(f" 실패 ({error_code})")
        if error_message:
            parts.append(f": {error_message}")

        super().__init__(
            "".join(parts),
            cause,
            {"service": service, "operation": operation, "error_code": error_code},
        )
        self.service = service
        self.operation = operation
        self.error_code = error_code
        self.error_message = error_message

    @classmethod
    def from_client_error(cls, service: str, operation: str, client_error: Exception) -> APICallError:
        """botocore ClientError 의 응답에서 코드/메시지를 꺼내 생성"""
        error_info = _error_info(client_error)
        return cls(
            service,
            operation,
            error_code=error_info.get("Code"),
            error_message=error_info.get("Message"),
            cause=client_error,
        )


# =============================================================================
# 에러 코드 헬퍼
# =============================================================================

ACCESS_DENIED_CODES = frozenset(
    {
        "AccessDenied",
        "AccessDeniedException",
        "UnauthorizedAccess",
        "UnauthorizedOperation",
    }
)

THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "RateExceeded",
    }
)

NOT_FOUND_CODES = frozenset(
    {
        "ResourceNotFoundException",
        "ResourceNotFound",
        "NotFoundException",
        "InvalidParameterValue",
    }
)


def _error_info(error: BaseException) -> dict[str, Any]:
    """ClientError.response["Error"] (없으면 빈 딕셔너리)"""
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return {}
    return response.get("Error") or {}


def get_error_code(error: BaseException) -> str:
    """AWS 에러 코드 (ClientError/APICallError 가 아니면 예외 클래스 이름)"""
    if isinstance(error, APICallError):
        return error.error_code or type(error).__name__
    if getattr(error, "response", None) is None:
        return type(error).__name__
    return _error_info(error).get("Code", "Unknown")


def _code_in(error: BaseException, codes: frozenset[str]) -> bool:
    if isinstance(error, APICallError):
        return error.error_code in codes
    return _error_info(error).get("Code") in codes


def is_access_denied(error: BaseException) -> bool:
    return _code_in(error, ACCESS_DENIED_CODES)


def is_throttling(error: BaseException) -> bool:
    return _code_in(error, THROTTLING_CODES)


def is_not_found(error: BaseException) -> bool:
    return _code_in(error, NOT_FOUND_CODES)
