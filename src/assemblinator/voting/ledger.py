"""Ballot ledger: at most one immutable ballot per (agenda item, voter).

There is no read-then-insert duplicate check. The insert is attempted and
the (agenda_item_id, voter_id) unique constraint decides, so two
concurrent submissions from the same voter cannot both succeed. A retry
after a client timeout therefore either succeeds once or gets
DuplicateVote, which callers treat as "already recorded".
"""

from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..database.models import Ballot
from ..database.repository import AssemblyRepository
from ..logging import get_logger
from ..notify.notifier import ChangeEvent, ChangeKind, ChangeNotifier
from .errors import DuplicateVote, InvalidChoice, InvalidState
from .states import AgendaItemStatus, AssemblyStatus
from .types import Actor

logger = get_logger(__name__)


class BallotLedger:
    """Accepts and persists ballots."""

    def __init__(self, repo: AssemblyRepository, notifier: ChangeNotifier = None):
        self.repo = repo
        self.notifier = notifier

    def cast_ballot(self, actor: Actor, item_id: str, chosen_label: str) -> Ballot:
        """Record the actor's choice on an open agenda item.

        Raises:
            NotFound: Unknown agenda item
            InvalidState: Item not open, or its assembly not in progress
            InvalidChoice: Label is not one of the item's options
            DuplicateVote: The actor already has a ballot on this item
        """
        label = (chosen_label or "").strip()
        try:
            with self.repo.get_session() as session:
                # Status check and insert share one write lock; close_item waits.
                item = self.repo.load_item(session, item_id, shared=True)
                if item.status != AgendaItemStatus.OPEN:
                    raise InvalidState(
                        "Agenda item is not open for voting",
                        entity="agenda_item",
                        entity_id=item_id,
                        current=item.status.value,
                    )
                assembly = self.repo.load_assembly(session, item.assembly_id)
                if assembly.status != AssemblyStatus.IN_PROGRESS:
                    raise InvalidState(
                        "Assembly is not in progress",
                        entity="assembly",
                        entity_id=assembly.id,
                        current=assembly.status.value,
                    )
                if label not in item.options:
                    raise InvalidChoice(item_id, label, item.options)

                ballot = self.repo.insert_ballot(session, item_id, actor.voter_id, label)
                assembly_id = item.assembly_id
        except IntegrityError:
            if self.repo.get_ballot(item_id, actor.voter_id) is None:
                raise
            logger.info(f"Duplicate ballot rejected for item {item_id} voter {actor.voter_id}")
            raise DuplicateVote(item_id, actor.voter_id)

        logger.info(f"Ballot recorded on item {item_id}")
        if self.notifier:
            self.notifier.publish(ChangeEvent(
                kind=ChangeKind.BALLOT_CAST,
                assembly_id=assembly_id,
                agenda_item_id=item_id,
            ))
        return ballot

    def get_ballot(self, item_id: str, voter_id: str) -> Optional[Ballot]:
        """The voter's recorded ballot on an item, if any."""
        return self.repo.get_ballot(item_id, voter_id)

    def count_ballots(self, item_id: str) -> int:
        """Number of ballots recorded on an item."""
        return self.repo.count_ballots(item_id)
