"""Lifecycle states and the legal transitions between them.

Only transitions listed in the tables below are accepted; everything else
raises InvalidState.
"""

from enum import Enum

from .errors import InvalidState


class AssemblyStatus(Enum):
    """Lifecycle of a condominium assembly."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not ASSEMBLY_TRANSITIONS[self]


class AgendaItemStatus(Enum):
    """Lifecycle of an agenda item (pauta)."""

    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"


class VotingMode(Enum):
    """Display-only secrecy flag of an agenda item."""

    OPEN = "open"
    SECRET = "secret"


ASSEMBLY_TRANSITIONS = {
    AssemblyStatus.SCHEDULED: {AssemblyStatus.IN_PROGRESS, AssemblyStatus.CANCELLED},
    AssemblyStatus.IN_PROGRESS: {AssemblyStatus.CLOSED, AssemblyStatus.CANCELLED},
    AssemblyStatus.CLOSED: set(),
    AssemblyStatus.CANCELLED: set(),
}

AGENDA_ITEM_TRANSITIONS = {
    AgendaItemStatus.PENDING: {AgendaItemStatus.OPEN},
    AgendaItemStatus.OPEN: {AgendaItemStatus.CLOSED},
    AgendaItemStatus.CLOSED: set(),
}


def require_assembly_transition(
    assembly_id: str, current: AssemblyStatus, target: AssemblyStatus
) -> None:
    """Raise InvalidState unless current -> target is a listed transition."""
    if target not in ASSEMBLY_TRANSITIONS[current]:
        raise InvalidState(
            f"Assembly cannot move from {current.value} to {target.value}",
            entity="assembly",
            entity_id=assembly_id,
            current=current.value,
        )


def require_item_transition(
    item_id: str, current: AgendaItemStatus, target: AgendaItemStatus
) -> None:
    """Raise InvalidState unless current -> target is a listed transition."""
    if target not in AGENDA_ITEM_TRANSITIONS[current]:
        raise InvalidState(
            f"Agenda item cannot move from {current.value} to {target.value}",
            entity="agenda_item",
            entity_id=item_id,
            current=current.value,
        )
