"""Errors raised by the assembly voting operations.

All of them are local, recoverable conditions: callers render a specific
message from the attributes and carry on.
"""

from typing import Optional


class VotingError(Exception):
    """Base class for assembly voting errors."""

    pass


class InvalidState(VotingError):
    """Operation is not legal for the entity's current lifecycle state."""

    def __init__(
        self,
        message: str,
        entity: str = None,
        entity_id: str = None,
        current: Optional[str] = None,
    ):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id
        self.current = current


class DuplicateVote(VotingError):
    """A ballot already exists for this voter and agenda item.

    Callers should treat this as "already recorded", not as a failure.
    """

    def __init__(self, agenda_item_id: str, voter_id: str):
        super().__init__("Ballot already recorded for this agenda item")
        self.agenda_item_id = agenda_item_id
        self.voter_id = voter_id


class InvalidChoice(VotingError):
    """The chosen label is not one of the agenda item's options."""

    def __init__(self, agenda_item_id: str, label: str, options=()):
        super().__init__(f"'{label}' is not an option for this agenda item")
        self.agenda_item_id = agenda_item_id
        self.label = label
        self.options = list(options)


class NotFound(VotingError):
    """Referenced assembly, agenda item or voter does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class CapabilityDenied(VotingError):
    """Actor's role may not perform an admin-only operation."""

    def __init__(self, operation: str, role: str):
        super().__init__(f"Role '{role}' may not {operation}")
        self.operation = operation
        self.role = role


class ValidationError(VotingError):
    """Malformed input (blank title, fewer than two options, duplicates...)."""

    pass
