"""Type definitions shared by the voting operations."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .errors import CapabilityDenied


class Role(Enum):
    """Condominium roles as resolved by the identity service."""

    ADMIN = "admin"
    SINDICO = "sindico"
    SUB_SINDICO = "sub_sindico"
    CONSELHO = "conselho"
    MORADOR = "morador"
    PENDING = "pending"


MANAGER_ROLES = frozenset({Role.ADMIN, Role.SINDICO, Role.SUB_SINDICO})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation.

    Attributes:
        voter_id: Identity-service user id
        role: Resolved condominium role
    """
    voter_id: str
    role: Role = Role.MORADOR

    @property
    def can_manage(self) -> bool:
        """Whether the actor may run admin-only transitions."""
        return self.role in MANAGER_ROLES

    def require_manager(self, operation: str) -> None:
        """Raise CapabilityDenied unless the actor may manage assemblies."""
        if not self.can_manage:
            raise CapabilityDenied(operation, self.role.value)


class TiePolicy(Enum):
    """How a shared maximum count resolves the winner."""

    FIRST_DECLARED = "first_declared"
    NO_WINNER = "no_winner"

    @classmethod
    def from_env(cls) -> "TiePolicy":
        """Read TALLY_TIE_POLICY, falling back to FIRST_DECLARED."""
        value = os.getenv("TALLY_TIE_POLICY", cls.FIRST_DECLARED.value).strip().lower()
        try:
            return cls(value)
        except ValueError:
            return cls.FIRST_DECLARED


@dataclass
class OptionResult:
    """Count and share of one option."""
    label: str
    count: int = 0
    percentage: float = 0.0


@dataclass
class TallyResult:
    """Derived result of an agenda item; never persisted.

    Attributes:
        agenda_item_id: The tallied item
        title: Item title at computation time
        total: Number of ballots
        options: Per-option results in declared order
        winner: Winning label, or None
        tied: Whether several options share the maximum count
        is_final: Whether the item was closed when tallied
    """
    agenda_item_id: str
    title: str
    total: int
    options: List[OptionResult] = field(default_factory=list)
    winner: Optional[str] = None
    tied: bool = False
    is_final: bool = False

    def option(self, label: str) -> Optional[OptionResult]:
        """Look up an option result by label."""
        for result in self.options:
            if result.label == label:
                return result
        return None


class PresenceOutcome(Enum):
    """What a visit to a presence link produced."""

    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"
    UNAVAILABLE = "unavailable"
