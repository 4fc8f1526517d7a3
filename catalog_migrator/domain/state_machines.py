"""State machine for migration runs.

A run moves through a fixed sequence of steps. Any active step may fail
into ERROR, and the record loops may stop early into CANCELLED.
"""

from enum import Enum

from catalog_migrator.domain.exceptions import InvalidStateTransitionError


class MigrationStep(str, Enum):
    """Migration run steps.

    State diagram:
        IDLE
          │ start
          ▼
        STARTING ──────────────────────────────┐
          │                                    │
          ▼                                    │
        CATEGORIES ───────────┬────────────────┤
          │                   │ cancel         │
          ▼                   ▼                │ fail
        PRODUCTS ────────► CANCELLED           │
          │                                    │
          ▼                                    │
        VALIDATION ────────────────────────────┤
          │                                    ▼
          ▼                                  ERROR
        COMPLETE
    """

    IDLE = "idle"
    STARTING = "starting"
    CATEGORIES = "categories"
    PRODUCTS = "products"
    VALIDATION = "validation"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "MigrationStep") -> bool:
        """Check if transition to target step is valid.

        Args:
            target: Target step to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _MIGRATION_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["MigrationStep"]:
        """Get list of valid target steps.

        Returns:
            List of steps that can be transitioned to.
        """
        return list(_MIGRATION_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) step.

        Returns:
            True if no further transitions are possible.
        """
        return len(_MIGRATION_TRANSITIONS.get(self, set())) == 0

    def is_running(self) -> bool:
        """Check if a run is in flight in this step.

        Returns:
            True for every step between IDLE and a terminal step.
        """
        return self is not MigrationStep.IDLE and not self.is_terminal()


_MIGRATION_TRANSITIONS: dict[MigrationStep, set[MigrationStep]] = {
    MigrationStep.IDLE: {MigrationStep.STARTING},
    MigrationStep.STARTING: {MigrationStep.CATEGORIES, MigrationStep.ERROR},
    MigrationStep.CATEGORIES: {
        MigrationStep.PRODUCTS,
        MigrationStep.ERROR,
        MigrationStep.CANCELLED,
    },
    MigrationStep.PRODUCTS: {
        MigrationStep.VALIDATION,
        MigrationStep.ERROR,
        MigrationStep.CANCELLED,
    },
    MigrationStep.VALIDATION: {MigrationStep.COMPLETE, MigrationStep.ERROR},
    MigrationStep.COMPLETE: set(),  # Terminal state
    MigrationStep.ERROR: set(),  # Terminal state
    MigrationStep.CANCELLED: set(),  # Terminal state
}


def validate_migration_transition(
    migration_id: str,
    current_step: MigrationStep,
    target_step: MigrationStep,
) -> None:
    """Validate and raise if migration step transition is invalid.

    Args:
        migration_id: Migration identifier for error message.
        current_step: Current step.
        target_step: Target step.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_step.can_transition_to(target_step):
        raise InvalidStateTransitionError(
            entity_type="Migration",
            entity_id=migration_id,
            current_state=current_step.value,
            target_state=target_step.value,
            allowed_transitions=[s.value for s in current_step.allowed_transitions()],
        )
