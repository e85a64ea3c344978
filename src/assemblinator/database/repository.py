"""Repository for assembly voting database operations.

Presence and Ballot rows are inserted only through insert_presence() and
insert_ballot(). Uniqueness is left to the storage constraints, so a
concurrent duplicate surfaces as sqlalchemy.exc.IntegrityError.
"""

from contextlib import contextmanager
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker, Session

from ..logging import get_logger
from ..voting.errors import NotFound
from .models import Base, Assembly, AgendaItem, Presence, Ballot

logger = get_logger(__name__)


class AssemblyRepository:
    """Repository for assembly voting database operations."""

    def __init__(self, engine):
        self.engine = engine
        Base.metadata.create_all(engine)
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        logger.info("Database repository initialized")

    @contextmanager
    def get_session(self) -> Session:
        """Transactional session scope: commit on success, rollback on error."""
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== Loaders (inside a session) ====================

    def load_assembly(self, session: Session, assembly_id: str, lock: bool = False) -> Assembly:
        """Load an assembly or raise NotFound.

        Args:
            session: Active session
            assembly_id: Assembly id
            lock: Take a row lock for a state transition. SQLite has no row
                  locks; its transactions hold the database write lock instead.
        """
        query = session.query(Assembly).filter_by(id=assembly_id)
        if lock:
            query = query.with_for_update()
        assembly = query.first()
        if assembly is None:
            raise NotFound("assembly", assembly_id)
        return assembly

    def load_item(self, session: Session, item_id: str, lock: bool = False, shared: bool = False) -> AgendaItem:
        """Load an agenda item or raise NotFound.

        Args:
            session: Active session
            item_id: Agenda item id
            lock: Take an exclusive row lock for a state transition
            shared: Take a shared row lock so the status cannot change
                    until the transaction ends (used when casting ballots).
                    On SQLite the write lock taken at BEGIN covers this.
        """
        query = session.query(AgendaItem).filter_by(id=item_id)
        if lock:
            query = query.with_for_update()
        elif shared:
            query = query.with_for_update(read=True)
        item = query.first()
        if item is None:
            raise NotFound("agenda_item", item_id)
        return item

    # ==================== Assemblies ====================

    def add_assembly(self, session: Session, assembly: Assembly) -> Assembly:
        """Stage a new assembly and assign its id."""
        session.add(assembly)
        session.flush()
        return assembly

    def get_assembly(self, assembly_id: str) -> Optional[Assembly]:
        """Get an assembly by id."""
        with self.get_session() as session:
            assembly = session.get(Assembly, assembly_id)
            if assembly:
                session.expunge(assembly)
            return assembly

    def list_assemblies(self, condominium_id: str = None) -> List[Assembly]:
        """List assemblies, newest scheduled first."""
        with self.get_session() as session:
            query = session.query(Assembly)
            if condominium_id:
                query = query.filter_by(condominium_id=condominium_id)
            assemblies = query.order_by(Assembly.scheduled_at.desc()).all()
            for assembly in assemblies:
                session.expunge(assembly)
            return assemblies

    def delete_assembly(self, session: Session, assembly: Assembly) -> None:
        """Delete an assembly with its items, presences and ballots."""
        session.delete(assembly)

    # ==================== Agenda items ====================

    def next_item_positions(self, session: Session, assembly_id: str) -> Dict[str, int]:
        """Return the next free order value and creation sequence for an assembly."""
        max_order, max_sequence = session.query(
            func.max(AgendaItem.order),
            func.max(AgendaItem.sequence),
        ).filter(AgendaItem.assembly_id == assembly_id).one()
        return {
            "order": (max_order or 0) + 1,
            "sequence": (max_sequence or 0) + 1,
        }

    def add_item(self, session: Session, item: AgendaItem) -> AgendaItem:
        """Stage a new agenda item and assign its id."""
        session.add(item)
        session.flush()
        return item

    def get_item(self, item_id: str) -> Optional[AgendaItem]:
        """Get an agenda item by id."""
        with self.get_session() as session:
            item = session.get(AgendaItem, item_id)
            if item:
                session.expunge(item)
            return item

    def list_items(self, assembly_id: str) -> List[AgendaItem]:
        """List agenda items by order, ties broken by creation order."""
        with self.get_session() as session:
            items = session.query(AgendaItem).filter_by(
                assembly_id=assembly_id
            ).order_by(
                AgendaItem.order, AgendaItem.sequence, AgendaItem.created_at
            ).all()
            for item in items:
                session.expunge(item)
            return items

    def delete_item(self, session: Session, item: AgendaItem) -> None:
        """Delete an agenda item."""
        session.delete(item)

    # ==================== Presences ====================

    def insert_presence(self, session: Session, assembly_id: str, voter_id: str) -> Presence:
        """Insert a presence row; a duplicate raises IntegrityError at flush."""
        presence = Presence(assembly_id=assembly_id, voter_id=voter_id)
        session.add(presence)
        session.flush()
        return presence

    def get_presence(self, assembly_id: str, voter_id: str) -> Optional[Presence]:
        """Get a voter's presence at an assembly."""
        with self.get_session() as session:
            presence = session.query(Presence).filter_by(
                assembly_id=assembly_id,
                voter_id=voter_id,
            ).first()
            if presence:
                session.expunge(presence)
            return presence

    def list_presences(self, assembly_id: str) -> List[Presence]:
        """List presences of an assembly in registration order."""
        with self.get_session() as session:
            presences = session.query(Presence).filter_by(
                assembly_id=assembly_id
            ).order_by(Presence.registered_at, Presence.id).all()
            for presence in presences:
                session.expunge(presence)
            return presences

    def count_presences(self, assembly_id: str) -> int:
        """Count presences of an assembly."""
        with self.get_session() as session:
            return session.query(func.count(Presence.id)).filter_by(
                assembly_id=assembly_id
            ).scalar() or 0

    # ==================== Ballots ====================

    def insert_ballot(self, session: Session, item_id: str, voter_id: str, choice: str) -> Ballot:
        """Insert a ballot row; a duplicate raises IntegrityError at flush."""
        ballot = Ballot(agenda_item_id=item_id, voter_id=voter_id, choice=choice)
        session.add(ballot)
        session.flush()
        return ballot

    def get_ballot(self, item_id: str, voter_id: str) -> Optional[Ballot]:
        """Get a voter's ballot on an agenda item."""
        with self.get_session() as session:
            ballot = session.query(Ballot).filter_by(
                agenda_item_id=item_id,
                voter_id=voter_id,
            ).first()
            if ballot:
                session.expunge(ballot)
            return ballot

    def count_ballots_by_choice(self, session: Session, item_id: str) -> Dict[str, int]:
        """Count ballots of an agenda item grouped by chosen label."""
        rows = session.query(
            Ballot.choice, func.count(Ballot.id)
        ).filter(
            Ballot.agenda_item_id == item_id
        ).group_by(Ballot.choice).all()
        return {choice: count for choice, count in rows}

    def count_ballots(self, item_id: str) -> int:
        """Count every ballot of an agenda item."""
        with self.get_session() as session:
            return session.query(func.count(Ballot.id)).filter_by(
                agenda_item_id=item_id
            ).scalar() or 0
