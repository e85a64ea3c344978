"""Assembly results report: the data a results document is rendered from.

A report is built only for a closed assembly and is a pure function of
persisted state plus the generation timestamp.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from ..database.repository import AssemblyRepository
from ..logging import get_logger
from ..utils.timezone import ensure_utc
from ..voting.errors import InvalidState
from ..voting.states import AssemblyStatus
from ..voting.tally import ResultsAggregator
from ..voting.types import TallyResult

logger = get_logger(__name__)


@dataclass
class ItemReport:
    """One agenda item section of the report."""
    number: int
    title: str
    description: str
    tally: TallyResult


@dataclass
class AssemblyReport:
    """Everything needed to render an assembly's final results.

    Attributes:
        assembly_id: Reported assembly
        title: Assembly title
        scheduled_at: Meeting date and time (UTC)
        generated_at: When the report was built (UTC)
        items: Item sections in agenda order
    """
    assembly_id: str
    title: str
    scheduled_at: datetime
    generated_at: datetime
    items: List[ItemReport] = field(default_factory=list)

    @property
    def total_ballots(self) -> int:
        """Ballots across every item."""
        return sum(item.tally.total for item in self.items)


def build_report(
    repo: AssemblyRepository,
    aggregator: ResultsAggregator,
    assembly_id: str,
    generated_at: datetime = None,
) -> AssemblyReport:
    """Collect a closed assembly's items and final tallies.

    Args:
        repo: Repository to read from
        aggregator: Tally source
        assembly_id: Assembly to report on
        generated_at: Generation timestamp (defaults to now)

    Raises:
        NotFound: Unknown assembly
        InvalidState: Assembly is not closed
    """
    with repo.get_session() as session:
        assembly = repo.load_assembly(session, assembly_id)
        if assembly.status != AssemblyStatus.CLOSED:
            raise InvalidState(
                "Results can only be exported for a closed assembly",
                entity="assembly",
                entity_id=assembly_id,
                current=assembly.status.value,
            )
        title = assembly.title
        scheduled_at = ensure_utc(assembly.scheduled_at)

    items = repo.list_items(assembly_id)
    tallies = {tally.agenda_item_id: tally for tally in aggregator.tallies_for_assembly(assembly_id)}

    report = AssemblyReport(
        assembly_id=assembly_id,
        title=title,
        scheduled_at=scheduled_at,
        generated_at=ensure_utc(generated_at or datetime.now(timezone.utc)),
        items=[
            ItemReport(
                number=index,
                title=item.title,
                description=item.description or "",
                tally=tallies[item.id],
            )
            for index, item in enumerate(items, start=1)
            if item.id in tallies
        ],
    )
    logger.info(f"Built report for assembly {assembly_id} with {len(report.items)} item(s)")
    return report


def slugify(title: str) -> str:
    """Lower-case ASCII slug: accents folded, whitespace to "_", others dropped."""
    folded = unicodedata.normalize("NFKD", title or "")
    folded = folded.encode("ascii", "ignore").decode("ascii").lower()
    folded = re.sub(r"\s+", "_", folded.strip())
    return re.sub(r"[^a-z0-9_]", "", folded)


def report_filename(report: AssemblyReport) -> str:
    """File name for an exported report.

    Example: "assembleia_assembleia_geral_ordinaria_2026-10-19.pdf"
    """
    return f"assembleia_{slugify(report.title)}_{report.generated_at:%Y-%m-%d}.pdf"
