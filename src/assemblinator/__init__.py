"""Assemblinator - Condominium assembly presence and voting.

This package provides:
- Assembly and agenda item lifecycles (scheduled -> in_progress -> closed)
- Presence registration via scannable links
- A ballot ledger with one ballot per voter per agenda item
- Live and final vote tallies
- Change notification (in-process + realtime channel)
- Results export to PDF
- Privacy-safe logging
"""

__version__ = "0.1.0"

from .logging import setup_logging, get_logger

# Application
from .app import Assemblinator

# Voting
from .voting import (
    Actor,
    Role,
    AssemblyStatus,
    AgendaItemStatus,
    VotingMode,
    TiePolicy,
    TallyResult,
    OptionResult,
    PresenceOutcome,
    VotingError,
    InvalidState,
    DuplicateVote,
    InvalidChoice,
    NotFound,
    CapabilityDenied,
    ValidationError,
)

# Notification
from .notify import ChangeEvent, ChangeKind, ChangeNotifier, RealtimeChannel

# Database
from .database import AssemblyRepository, create_database_engine

__all__ = [
    "__version__",
    "setup_logging",
    "get_logger",
    # Application
    "Assemblinator",
    # Voting
    "Actor",
    "Role",
    "AssemblyStatus",
    "AgendaItemStatus",
    "VotingMode",
    "TiePolicy",
    "TallyResult",
    "OptionResult",
    "PresenceOutcome",
    "VotingError",
    "InvalidState",
    "DuplicateVote",
    "InvalidChoice",
    "NotFound",
    "CapabilityDenied",
    "ValidationError",
    # Notification
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "RealtimeChannel",
    # Database
    "AssemblyRepository",
    "create_database_engine",
]
