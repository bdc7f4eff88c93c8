"""Tests for shared types module."""

from stackbuild.types import ServiceOutcome


class TestEnums:
    """Test enum definitions."""

    def test_service_outcome_values(self) -> None:
        """ServiceOutcome should have expected values."""
        assert ServiceOutcome.BUILT.value == "built"
        assert ServiceOutcome.TAGGED.value == "tagged"
        assert ServiceOutcome.PULLED.value == "pulled"

    def test_service_outcome_is_str(self) -> None:
        """ServiceOutcome members should compare equal to their values."""
        assert ServiceOutcome("pulled") is ServiceOutcome.PULLED
        assert ServiceOutcome.BUILT == "built"
