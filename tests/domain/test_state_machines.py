"""Tests for domain state machines."""

import pytest

from cartsync.domain import MigrationStatus
from cartsync.domain.exceptions import InvalidStateTransitionError
from cartsync.domain.state_machines import validate_migration_transition


class TestMigrationStatus:
    """Tests for MigrationStatus state machine."""

    def test_cloning_can_verify_or_fail(self) -> None:
        """CLONING can transition to VERIFYING or FAILED."""
        assert MigrationStatus.CLONING.can_transition_to(MigrationStatus.VERIFYING)
        assert MigrationStatus.CLONING.can_transition_to(MigrationStatus.FAILED)

    def test_cloning_cannot_retire_source(self) -> None:
        """The source cannot be retired before the clone is verified."""
        assert not MigrationStatus.CLONING.can_transition_to(MigrationStatus.RETIRING_SOURCE)

    def test_verifying_can_retire_or_fail(self) -> None:
        """VERIFYING can transition to RETIRING_SOURCE or FAILED."""
        assert MigrationStatus.VERIFYING.can_transition_to(MigrationStatus.RETIRING_SOURCE)
        assert MigrationStatus.VERIFYING.can_transition_to(MigrationStatus.FAILED)

    def test_retiring_source_cannot_fail(self) -> None:
        """Once retiring, a failure is a partial migration, not FAILED."""
        assert not MigrationStatus.RETIRING_SOURCE.can_transition_to(MigrationStatus.FAILED)
        assert MigrationStatus.RETIRING_SOURCE.can_transition_to(
            MigrationStatus.PARTIAL_MIGRATION
        )

    def test_terminal_states(self) -> None:
        """DONE, FAILED and PARTIAL_MIGRATION are terminal."""
        for status in (
            MigrationStatus.DONE,
            MigrationStatus.FAILED,
            MigrationStatus.PARTIAL_MIGRATION,
        ):
            assert status.is_terminal()
            assert status.allowed_transitions() == []

    def test_only_done_retires_source(self) -> None:
        """Only DONE means the source cart is gone."""
        assert MigrationStatus.DONE.source_retired()
        assert not MigrationStatus.PARTIAL_MIGRATION.source_retired()


class TestValidateMigrationTransition:
    """Tests for validate_migration_transition."""

    def test_valid_transition_passes(self) -> None:
        """Valid transitions do not raise."""
        validate_migration_transition("cart-1", MigrationStatus.CLONING, MigrationStatus.VERIFYING)

    def test_invalid_transition_raises(self) -> None:
        """Invalid transitions raise with details."""
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_migration_transition("cart-1", MigrationStatus.DONE, MigrationStatus.CLONING)
        assert exc_info.value.details["entity_type"] == "Migration"
        assert exc_info.value.details["entity_id"] == "cart-1"
        assert exc_info.value.details["allowed_transitions"] == []
