"""Assembly voting: lifecycle states, errors and result types.

The operations themselves live in the submodules (assemblies, agenda,
presence, ledger, tally) and are wired together by assemblinator.app.
"""

from .errors import (
    VotingError,
    InvalidState,
    DuplicateVote,
    InvalidChoice,
    NotFound,
    CapabilityDenied,
    ValidationError,
)
from .states import AssemblyStatus, AgendaItemStatus, VotingMode
from .types import Actor, Role, TiePolicy, OptionResult, TallyResult, PresenceOutcome

__all__ = [
    "VotingError",
    "InvalidState",
    "DuplicateVote",
    "InvalidChoice",
    "NotFound",
    "CapabilityDenied",
    "ValidationError",
    "AssemblyStatus",
    "AgendaItemStatus",
    "VotingMode",
    "Actor",
    "Role",
    "TiePolicy",
    "OptionResult",
    "TallyResult",
    "PresenceOutcome",
]
