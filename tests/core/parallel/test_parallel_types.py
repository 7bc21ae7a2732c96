"""
tests/core/parallel/test_parallel_types.py - core/parallel/types.py 테스트
"""

from core.parallel.types import ErrorCategory, TaskOutcome


class TestTaskOutcome:
    """TaskOutcome 테스트"""

    def test_success(self):
        outcome = TaskOutcome(value=42)
        assert outcome.ok
        assert outcome.value == 42

    def test_failure(self):
        error = RuntimeError("boom")
        outcome: TaskOutcome[int] = TaskOutcome(error=error)
        assert not outcome.ok
        assert outcome.value is None
        assert outcome.error is error

    def test_none_value_is_success(self):
        """값이 None이어도 에러가 없으면 성공"""
        assert TaskOutcome(value=None).ok


class TestErrorCategory:
    """ErrorCategory 열거형 테스트"""

    def test_values(self):
        assert ErrorCategory.THROTTLING.value == "throttling"
        assert ErrorCategory.NETWORK.value == "network"
