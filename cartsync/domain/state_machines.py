"""State machines for domain workflows.

Deterministic state machines that define valid state transitions.
"""

from enum import Enum

from cartsync.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Migration State Machine
# ============================================================================


class MigrationStatus(str, Enum):
    """Cart migration states.

    State diagram:
        CLONING ───────────────────────────────► FAILED
          │                                        ▲
          │ clone created and populated            │
          ▼                                        │
        VERIFYING ─────────────────────────────────┘
          │
          │ clone matches source
          ▼
        RETIRING_SOURCE ───────────────────────► PARTIAL_MIGRATION
          │
          │ source deleted
          ▼
        DONE
    """

    CLONING = "cloning"
    VERIFYING = "verifying"
    RETIRING_SOURCE = "retiring_source"
    DONE = "done"
    FAILED = "failed"
    PARTIAL_MIGRATION = "partial_migration"

    def can_transition_to(self, target: "MigrationStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _MIGRATION_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["MigrationStatus"]:
        """Get list of valid target states."""
        return list(_MIGRATION_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_MIGRATION_TRANSITIONS.get(self, set())) == 0

    def source_retired(self) -> bool:
        """Whether the source cart has been deleted in this state."""
        return self == MigrationStatus.DONE


# Migration state transitions (defined outside enum to avoid Enum restrictions)
_MIGRATION_TRANSITIONS: dict[MigrationStatus, set[MigrationStatus]] = {
    MigrationStatus.CLONING: {MigrationStatus.VERIFYING, MigrationStatus.FAILED},
    MigrationStatus.VERIFYING: {MigrationStatus.RETIRING_SOURCE, MigrationStatus.FAILED},
    MigrationStatus.RETIRING_SOURCE: {MigrationStatus.DONE, MigrationStatus.PARTIAL_MIGRATION},
    MigrationStatus.DONE: set(),  # Terminal state
    MigrationStatus.FAILED: set(),  # Terminal state
    MigrationStatus.PARTIAL_MIGRATION: set(),  # Terminal state
}


def validate_migration_transition(
    migration_id: str,
    current_status: MigrationStatus,
    target_status: MigrationStatus,
) -> None:
    """Validate and raise if migration state transition is invalid.

    Args:
        migration_id: Migration identifier (source cart id) for error message.
        current_status: Current migration status.
        target_status: Target migration status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Migration",
            entity_id=migration_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
