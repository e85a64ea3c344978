"""Database models for assemblies, agenda items, presences and ballots.

The (assembly, voter) and (agenda item, voter) pairs are unique at the
storage level; the registrar and the ledger rely on these constraints
rather than on a read before insert.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    Enum,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from ..voting.states import AssemblyStatus, AgendaItemStatus, VotingMode

Base = declarative_base()


def utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


def _enum_column(enum_class, default):
    return Column(
        Enum(
            enum_class,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=default,
    )


class Assembly(Base):
    """A condominium meeting with a lifecycle and an agenda."""

    __tablename__ = "assemblies"

    id = Column(String(36), primary_key=True, default=new_id)
    condominium_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    status = _enum_column(AssemblyStatus, AssemblyStatus.SCHEDULED)
    agenda_topics = Column(JSON, default=list)  # ["Abertura", "Ordem do dia"]
    minutes_topics = Column(JSON)
    agenda_document_url = Column(String(500))
    minutes_document_url = Column(String(500))
    created_at = Column(DateTime(timezone=True), default=utc_now)
    started_at = Column(DateTime(timezone=True))
    closed_at = Column(DateTime(timezone=True))

    items = relationship(
        "AgendaItem",
        back_populates="assembly",
        cascade="all, delete-orphan",
    )
    presences = relationship(
        "Presence",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Assembly(id={self.id[:8]}..., status={self.status.value})>"


class AgendaItem(Base):
    """One votable proposal (pauta) within an assembly."""

    __tablename__ = "agenda_items"

    id = Column(String(36), primary_key=True, default=new_id)
    assembly_id = Column(
        String(36),
        ForeignKey("assemblies.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, default="")
    order = Column("item_order", Integer, nullable=False, default=0)
    sequence = Column(Integer, nullable=False, default=0)  # creation order within the assembly
    voting_mode = _enum_column(VotingMode, VotingMode.OPEN)
    options = Column(JSON, nullable=False)  # ["Sim", "Não", "Abstenção"]
    status = _enum_column(AgendaItemStatus, AgendaItemStatus.PENDING)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    opened_at = Column(DateTime(timezone=True))
    closed_at = Column(DateTime(timezone=True))

    assembly = relationship("Assembly", back_populates="items")
    ballots = relationship(
        "Ballot",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_agenda_items_assembly", "assembly_id", "item_order"),
    )

    def __repr__(self):
        return f"<AgendaItem(id={self.id[:8]}..., order={self.order}, status={self.status.value})>"


class Presence(Base):
    """A voter's attendance at an assembly."""

    __tablename__ = "presences"

    id = Column(String(36), primary_key=True, default=new_id)
    assembly_id = Column(
        String(36),
        ForeignKey("assemblies.id", ondelete="CASCADE"),
        nullable=False,
    )
    voter_id = Column(String(64), nullable=False)
    registered_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("assembly_id", "voter_id", name="uq_presence_assembly_voter"),
    )


class Ballot(Base):
    """One voter's immutable choice on one agenda item."""

    __tablename__ = "ballots"

    id = Column(String(36), primary_key=True, default=new_id)
    agenda_item_id = Column(
        String(36),
        ForeignKey("agenda_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    voter_id = Column(String(64), nullable=False)
    choice = Column(String(200), nullable=False)
    cast_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("agenda_item_id", "voter_id", name="uq_ballot_item_voter"),
        Index("idx_ballots_item", "agenda_item_id"),
    )
