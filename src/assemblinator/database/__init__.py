"""Database models, engine factory and repository for Assemblinator."""

from .models import Base, Assembly, AgendaItem, Presence, Ballot
from .engine import create_database_engine, create_encrypted_engine
from .repository import AssemblyRepository

__all__ = [
    "Base",
    "Assembly",
    "AgendaItem",
    "Presence",
    "Ballot",
    "create_database_engine",
    "create_encrypted_engine",
    "AssemblyRepository",
]
