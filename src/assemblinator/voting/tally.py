"""Per-item vote tallies, computed on read from the ballot rows.

Winner selection is plain plurality. When several options share the
maximum, TiePolicy decides: FIRST_DECLARED picks the first of them in the
item's declared option order, NO_WINNER reports no winner. Either way the
result carries tied=True.
"""

from typing import Dict, List, Sequence

from ..database.models import AgendaItem
from ..database.repository import AssemblyRepository
from ..logging import get_logger
from .states import AgendaItemStatus, AssemblyStatus
from .types import OptionResult, TallyResult, TiePolicy

logger = get_logger(__name__)


def compute_tally(
    item_id: str,
    title: str,
    options: Sequence[str],
    counts: Dict[str, int],
    tie_policy: TiePolicy = TiePolicy.FIRST_DECLARED,
    is_final: bool = False,
) -> TallyResult:
    """Build a TallyResult from per-label ballot counts.

    Args:
        item_id: Agenda item id
        title: Agenda item title
        options: Declared option labels, in order
        counts: Ballot count per chosen label
        tie_policy: How to resolve a shared maximum
        is_final: Whether the item is closed

    Returns:
        TallyResult with percentages summing to 100 when there are ballots
    """
    total = sum(counts.values())
    results = []
    for label in options:
        count = counts.get(label, 0)
        percentage = (count / total * 100) if total > 0 else 0.0
        results.append(OptionResult(label=label, count=count, percentage=percentage))

    stray = set(counts) - set(options)
    if stray:
        logger.warning(f"Item {item_id} has ballots for undeclared labels: {sorted(stray)}")

    winner = None
    tied = False
    if total > 0 and results:
        best = max(r.count for r in results)
        leaders = [r for r in results if r.count == best]
        tied = len(leaders) > 1
        if not tied or tie_policy == TiePolicy.FIRST_DECLARED:
            winner = leaders[0].label

    return TallyResult(
        agenda_item_id=item_id,
        title=title,
        total=total,
        options=results,
        winner=winner,
        tied=tied,
        is_final=is_final,
    )


class ResultsAggregator:
    """Read-only tally computation over the ballot ledger.

    Safe to call concurrently with ballot casting; a live tally may miss
    ballots committed in the same instant.
    """

    def __init__(self, repo: AssemblyRepository, tie_policy: TiePolicy = None):
        self.repo = repo
        self.tie_policy = tie_policy or TiePolicy.from_env()

    def compute_tally(self, item_id: str) -> TallyResult:
        """Tally one agenda item.

        Raises:
            NotFound: Unknown agenda item
        """
        with self.repo.get_session() as session:
            item = self.repo.load_item(session, item_id)
            counts = self.repo.count_ballots_by_choice(session, item_id)
            return self._tally(item, counts)

    def tallies_for_assembly(self, assembly_id: str) -> List[TallyResult]:
        """Tally every item of an assembly in agenda order (audit view)."""
        with self.repo.get_session() as session:
            self.repo.load_assembly(session, assembly_id)
        return [
            self.compute_tally(item.id)
            for item in self.repo.list_items(assembly_id)
        ]

    def live_tallies(self, assembly_id: str) -> List[TallyResult]:
        """Tallies for display. A cancelled assembly displays none.

        Raises:
            NotFound: Unknown assembly
        """
        with self.repo.get_session() as session:
            assembly = self.repo.load_assembly(session, assembly_id)
            if assembly.status == AssemblyStatus.CANCELLED:
                return []
        return self.tallies_for_assembly(assembly_id)

    def _tally(self, item: AgendaItem, counts: Dict[str, int]) -> TallyResult:
        return compute_tally(
            item.id,
            item.title,
            item.options,
            counts,
            tie_policy=self.tie_policy,
            is_final=item.status == AgendaItemStatus.CLOSED,
        )
