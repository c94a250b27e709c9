"""Tests for shipit.core.errors module."""

from shipit.core.errors import ErrorCode


class TestErrorCode:
    def test_values_are_stable(self) -> None:
        """Exit codes are part of the CLI contract."""
        assert int(ErrorCode.OK) == 0
        assert int(ErrorCode.ROLLED_BACK) == 1
        assert int(ErrorCode.ROLLBACK_FAILED) == 2
        assert int(ErrorCode.PUBLISHED_WITH_WARNING) == 3
        assert int(ErrorCode.USER_ERROR) == 4

    def test_str_is_readable(self) -> None:
        assert str(ErrorCode.PUBLISHED_WITH_WARNING) == "published with warning"

    def test_is_success(self) -> None:
        assert ErrorCode.OK.is_success
        assert not ErrorCode.ROLLED_BACK.is_success

    def test_needs_operator(self) -> None:
        assert ErrorCode.ROLLBACK_FAILED.needs_operator
        assert ErrorCode.PUBLISHED_WITH_WARNING.needs_operator
        assert not ErrorCode.ROLLED_BACK.needs_operator
        assert not ErrorCode.OK.needs_operator
