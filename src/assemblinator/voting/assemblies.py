"""Assembly lifecycle: scheduled -> in_progress -> closed, or cancelled.

Only managers (admin, sindico, sub_sindico) may create, edit, delete or
move an assembly between states.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from ..database.models import Assembly, utc_now
from ..database.repository import AssemblyRepository
from ..logging import get_logger
from ..notify.notifier import ChangeEvent, ChangeKind, ChangeNotifier
from .errors import NotFound, ValidationError
from .states import AssemblyStatus, require_assembly_transition
from .types import Actor

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 200


def clean_title(title: str) -> str:
    """Strip a title and reject blank or oversized values."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title must not be blank")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def clean_topics(topics: Optional[Iterable[str]]) -> List[str]:
    """Strip topic strings, dropping blank ones and keeping order."""
    if topics is None:
        return []
    if isinstance(topics, str):
        raise ValidationError("Topics must be a list of strings")
    return [t.strip() for t in topics if t and t.strip()]


class AssemblyService:
    """Create, edit, delete and transition assemblies."""

    def __init__(self, repo: AssemblyRepository, notifier: ChangeNotifier = None):
        self.repo = repo
        self.notifier = notifier

    def _notify(self, kind: ChangeKind, assembly_id: str) -> None:
        if self.notifier:
            self.notifier.publish(ChangeEvent(kind=kind, assembly_id=assembly_id))

    # ==================== Queries ====================

    def get_assembly(self, assembly_id: str) -> Assembly:
        """Get an assembly or raise NotFound."""
        assembly = self.repo.get_assembly(assembly_id)
        if assembly is None:
            raise NotFound("assembly", assembly_id)
        return assembly

    def list_assemblies(self, condominium_id: str = None) -> List[Assembly]:
        """List a condominium's assemblies, newest scheduled first."""
        return self.repo.list_assemblies(condominium_id)

    # ==================== Admin CRUD ====================

    def create_assembly(
        self,
        actor: Actor,
        condominium_id: str,
        title: str,
        scheduled_at: datetime,
        agenda_topics: Iterable[str] = None,
        agenda_document_url: str = None,
    ) -> Assembly:
        """Schedule a new assembly."""
        actor.require_manager("create assemblies")
        if not condominium_id:
            raise ValidationError("Condominium id is required")
        if scheduled_at is None:
            raise ValidationError("Scheduled date is required")

        with self.repo.get_session() as session:
            assembly = self.repo.add_assembly(session, Assembly(
                condominium_id=condominium_id,
                title=clean_title(title),
                scheduled_at=scheduled_at,
                status=AssemblyStatus.SCHEDULED,
                agenda_topics=clean_topics(agenda_topics),
                agenda_document_url=agenda_document_url,
            ))

        logger.info(f"Assembly {assembly.id} scheduled for {scheduled_at.isoformat()}")
        return assembly

    def update_assembly(
        self,
        actor: Actor,
        assembly_id: str,
        title: str = None,
        scheduled_at: datetime = None,
        agenda_topics: Iterable[str] = None,
        minutes_topics: Iterable[str] = None,
        agenda_document_url: str = None,
        minutes_document_url: str = None,
    ) -> Assembly:
        """Edit descriptive fields. Status fields are never touched here.

        Arguments left as None keep their current value.
        """
        actor.require_manager("edit assemblies")
        with self.repo.get_session() as session:
            assembly = self.repo.load_assembly(session, assembly_id)
            if title is not None:
                assembly.title = clean_title(title)
            if scheduled_at is not None:
                assembly.scheduled_at = scheduled_at
            if agenda_topics is not None:
                assembly.agenda_topics = clean_topics(agenda_topics)
            if minutes_topics is not None:
                assembly.minutes_topics = clean_topics(minutes_topics)
            if agenda_document_url is not None:
                assembly.agenda_document_url = agenda_document_url or None
            if minutes_document_url is not None:
                assembly.minutes_document_url = minutes_document_url or None

        self._notify(ChangeKind.ASSEMBLY_UPDATED, assembly_id)
        return assembly

    def delete_assembly(self, actor: Actor, assembly_id: str) -> None:
        """Delete an assembly in any state, with its items, presences and ballots."""
        actor.require_manager("delete assemblies")
        with self.repo.get_session() as session:
            assembly = self.repo.load_assembly(session, assembly_id)
            self.repo.delete_assembly(session, assembly)

        logger.info(f"Assembly {assembly_id} deleted")
        self._notify(ChangeKind.ASSEMBLY_DELETED, assembly_id)

    # ==================== Transitions ====================

    def start(self, actor: Actor, assembly_id: str) -> Assembly:
        """scheduled -> in_progress; presence and voting become legal."""
        return self._transition(actor, assembly_id, AssemblyStatus.IN_PROGRESS, "start assemblies")

    def close(self, actor: Actor, assembly_id: str) -> Assembly:
        """in_progress -> closed. Open items stay queryable but stop accepting ballots."""
        return self._transition(actor, assembly_id, AssemblyStatus.CLOSED, "close assemblies")

    def cancel(self, actor: Actor, assembly_id: str) -> Assembly:
        """scheduled or in_progress -> cancelled. Cast ballots are kept for audit."""
        return self._transition(actor, assembly_id, AssemblyStatus.CANCELLED, "cancel assemblies")

    def _transition(
        self, actor: Actor, assembly_id: str, target: AssemblyStatus, operation: str
    ) -> Assembly:
        actor.require_manager(operation)
        with self.repo.get_session() as session:
            assembly = self.repo.load_assembly(session, assembly_id, lock=True)
            previous = assembly.status
            require_assembly_transition(assembly_id, previous, target)
            assembly.status = target
            if target == AssemblyStatus.IN_PROGRESS:
                assembly.started_at = utc_now()
            elif target == AssemblyStatus.CLOSED:
                assembly.closed_at = utc_now()

        logger.info(f"Assembly {assembly_id}: {previous.value} -> {target.value}")
        self._notify(ChangeKind.ASSEMBLY_STATUS_CHANGED, assembly_id)
        return assembly
