"""Agenda item lifecycle: pending -> open -> closed.

Items are edited and deleted only while pending. Once an item opens, its
option list is frozen: ballots store the chosen label by value.
"""

from typing import Iterable, List, Optional, Union

from ..database.models import AgendaItem, utc_now
from ..database.repository import AssemblyRepository
from ..logging import get_logger
from ..notify.notifier import ChangeEvent, ChangeKind, ChangeNotifier
from .assemblies import clean_title
from .errors import InvalidState, NotFound, ValidationError
from .states import AgendaItemStatus, AssemblyStatus, VotingMode, require_item_transition
from .types import Actor

logger = get_logger(__name__)

MIN_OPTIONS = 2
MAX_LABEL_LENGTH = 200


def clean_options(options: Iterable[str]) -> List[str]:
    """Validate an option list: 2+ non-blank labels, no duplicates, order kept.

    Labels are whitespace-trimmed; duplicates are detected case-insensitively
    so "Sim" and "sim" cannot both appear.
    """
    if options is None or isinstance(options, str):
        raise ValidationError("Options must be a list of labels")

    cleaned = []
    seen = set()
    for raw in options:
        label = (raw or "").strip()
        if not label:
            raise ValidationError("Option labels must not be blank")
        if len(label) > MAX_LABEL_LENGTH:
            raise ValidationError(f"Option labels must be at most {MAX_LABEL_LENGTH} characters")
        key = label.casefold()
        if key in seen:
            raise ValidationError(f"Duplicate option '{label}'")
        seen.add(key)
        cleaned.append(label)

    if len(cleaned) < MIN_OPTIONS:
        raise ValidationError(f"An agenda item needs at least {MIN_OPTIONS} options")
    return cleaned


def parse_voting_mode(mode: Union[str, VotingMode, None]) -> VotingMode:
    """Accept a VotingMode or its string value."""
    if mode is None:
        return VotingMode.OPEN
    if isinstance(mode, VotingMode):
        return mode
    try:
        return VotingMode(str(mode).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown voting mode '{mode}'")


def parse_order(order) -> int:
    """Coerce a sort position to int."""
    try:
        return int(order)
    except (TypeError, ValueError):
        raise ValidationError(f"Order must be a whole number, got '{order}'")


class AgendaService:
    """Create, edit, delete, open and close agenda items."""

    def __init__(self, repo: AssemblyRepository, notifier: ChangeNotifier = None):
        self.repo = repo
        self.notifier = notifier

    def _notify(self, kind: ChangeKind, assembly_id: str, item_id: str) -> None:
        if self.notifier:
            self.notifier.publish(ChangeEvent(
                kind=kind,
                assembly_id=assembly_id,
                agenda_item_id=item_id,
            ))

    # ==================== Queries ====================

    def get_item(self, item_id: str) -> AgendaItem:
        """Get an agenda item or raise NotFound."""
        item = self.repo.get_item(item_id)
        if item is None:
            raise NotFound("agenda_item", item_id)
        return item

    def list_items(self, assembly_id: str) -> List[AgendaItem]:
        """Agenda items in display order (order, then creation)."""
        return self.repo.list_items(assembly_id)

    # ==================== Admin CRUD ====================

    def add_item(
        self,
        actor: Actor,
        assembly_id: str,
        title: str,
        options: Iterable[str],
        description: str = "",
        order: Optional[int] = None,
        voting_mode: Union[str, VotingMode] = VotingMode.OPEN,
    ) -> AgendaItem:
        """Add a pending item to an assembly.

        Args:
            order: Sort position; None appends after the current last item.
                   Equal values are allowed and fall back to creation order.
        """
        actor.require_manager("add agenda items")
        title = clean_title(title)
        options = clean_options(options)
        mode = parse_voting_mode(voting_mode)
        if order is not None:
            order = parse_order(order)

        with self.repo.get_session() as session:
            self.repo.load_assembly(session, assembly_id)
            positions = self.repo.next_item_positions(session, assembly_id)
            item = self.repo.add_item(session, AgendaItem(
                assembly_id=assembly_id,
                title=title,
                description=(description or "").strip(),
                order=positions["order"] if order is None else order,
                sequence=positions["sequence"],
                voting_mode=mode,
                options=options,
                status=AgendaItemStatus.PENDING,
            ))

        logger.info(f"Agenda item {item.id} added to assembly {assembly_id} at order {item.order}")
        self._notify(ChangeKind.ITEM_CREATED, assembly_id, item.id)
        return item

    def edit_item(
        self,
        actor: Actor,
        item_id: str,
        title: str = None,
        description: str = None,
        options: Iterable[str] = None,
        order: int = None,
        voting_mode: Union[str, VotingMode] = None,
    ) -> AgendaItem:
        """Edit a pending item. Arguments left as None keep their value."""
        actor.require_manager("edit agenda items")
        with self.repo.get_session() as session:
            item = self.repo.load_item(session, item_id, lock=True)
            self._require_pending(item, "edited")
            if title is not None:
                item.title = clean_title(title)
            if description is not None:
                item.description = description.strip()
            if options is not None:
                item.options = clean_options(options)
            if order is not None:
                item.order = parse_order(order)
            if voting_mode is not None:
                item.voting_mode = parse_voting_mode(voting_mode)
            assembly_id = item.assembly_id

        self._notify(ChangeKind.ITEM_UPDATED, assembly_id, item_id)
        return item

    def delete_item(self, actor: Actor, item_id: str) -> None:
        """Delete a pending item."""
        actor.require_manager("delete agenda items")
        with self.repo.get_session() as session:
            item = self.repo.load_item(session, item_id, lock=True)
            self._require_pending(item, "deleted")
            assembly_id = item.assembly_id
            self.repo.delete_item(session, item)

        logger.info(f"Agenda item {item_id} deleted")
        self._notify(ChangeKind.ITEM_DELETED, assembly_id, item_id)

    # ==================== Transitions ====================

    def open_item(self, actor: Actor, item_id: str) -> AgendaItem:
        """pending -> open, only while the parent assembly is in progress."""
        actor.require_manager("open agenda items")
        with self.repo.get_session() as session:
            item = self.repo.load_item(session, item_id, lock=True)
            require_item_transition(item_id, item.status, AgendaItemStatus.OPEN)
            assembly = self.repo.load_assembly(session, item.assembly_id)
            if assembly.status != AssemblyStatus.IN_PROGRESS:
                raise InvalidState(
                    "Voting can only open while the assembly is in progress",
                    entity="assembly",
                    entity_id=assembly.id,
                    current=assembly.status.value,
                )
            item.status = AgendaItemStatus.OPEN
            item.opened_at = utc_now()
            assembly_id = item.assembly_id

        logger.info(f"Agenda item {item_id} open for voting")
        self._notify(ChangeKind.ITEM_STATUS_CHANGED, assembly_id, item_id)
        return item

    def close_item(self, actor: Actor, item_id: str) -> AgendaItem:
        """open -> closed; the tally becomes final."""
        actor.require_manager("close agenda items")
        with self.repo.get_session() as session:
            item = self.repo.load_item(session, item_id, lock=True)
            require_item_transition(item_id, item.status, AgendaItemStatus.CLOSED)
            item.status = AgendaItemStatus.CLOSED
            item.closed_at = utc_now()
            assembly_id = item.assembly_id

        logger.info(f"Agenda item {item_id} closed")
        self._notify(ChangeKind.ITEM_STATUS_CHANGED, assembly_id, item_id)
        return item

    @staticmethod
    def _require_pending(item: AgendaItem, action: str) -> None:
        if item.status != AgendaItemStatus.PENDING:
            raise InvalidState(
                f"Agenda item can only be {action} while pending",
                entity="agenda_item",
                entity_id=item.id,
                current=item.status.value,
            )
