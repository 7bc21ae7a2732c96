# cli/ui - 콘솔 출력 (rich)
"""
콘솔 출력 및 로깅 설정 모듈
"""

from .console import (
    console,
    err_console,
    get_console,
    print_error,
    print_success,
    print_table,
    setup_logging,
)

__all__ = [
    "console",
    "err_console",
    "get_console",
    "print_error",
    "print_success",
    "print_table",
    "setup_logging",
]
