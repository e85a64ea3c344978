"""Assemblinator application: wires storage, services and notification."""

import os
from typing import Optional

from sqlalchemy.engine import Engine

from .database.engine import create_database_engine
from .database.repository import AssemblyRepository
from .export.pdf import write_pdf
from .export.report import AssemblyReport, build_report
from .logging import get_logger
from .notify.channel import RealtimeChannel
from .notify.notifier import ChangeNotifier
from .voting.agenda import AgendaService
from .voting.assemblies import AssemblyService
from .voting.ledger import BallotLedger
from .voting.presence import PresenceRegistrar
from .voting.tally import ResultsAggregator
from .voting.types import TiePolicy

logger = get_logger(__name__)


class Assemblinator:
    """Entry point for the assembly voting subsystem.

    Example:
        app = Assemblinator()
        assembly = app.assemblies.create_assembly(admin, condo_id, "AGO 2026", when)
        app.assemblies.start(admin, assembly.id)
        app.presence.register_presence(voter, assembly.id)
    """

    def __init__(
        self,
        engine: Engine = None,
        notifier: ChangeNotifier = None,
        realtime_url: str = None,
        tie_policy: TiePolicy = None,
    ):
        """Initialize the application.

        Args:
            engine: SQLAlchemy engine (default from DATABASE_URL / DB_PATH)
            notifier: Change notifier (a fresh one by default)
            realtime_url: Change channel URL (default REALTIME_URL env);
                          events are forwarded there when set
            tie_policy: Tally tie policy (default TALLY_TIE_POLICY env)
        """
        self.engine = engine or create_database_engine()
        self.repo = AssemblyRepository(self.engine)
        self.notifier = notifier or ChangeNotifier()

        self.channel: Optional[RealtimeChannel] = None
        realtime_url = realtime_url or os.getenv("REALTIME_URL")
        if realtime_url:
            self.channel = RealtimeChannel(realtime_url)
            self.notifier.subscribe_all(self.channel.forward)
            logger.info(f"Forwarding change events to {self.channel.base_url}")

        self.assemblies = AssemblyService(self.repo, self.notifier)
        self.agenda = AgendaService(self.repo, self.notifier)
        self.presence = PresenceRegistrar(self.repo)
        self.ledger = BallotLedger(self.repo, self.notifier)
        self.results = ResultsAggregator(self.repo, tie_policy)

    def build_report(self, assembly_id: str) -> AssemblyReport:
        """Final results report of a closed assembly."""
        return build_report(self.repo, self.results, assembly_id)

    def export_pdf(self, assembly_id: str, output_dir: str = None) -> str:
        """Export a closed assembly's results as a PDF file.

        Returns:
            Path of the written file

        Raises:
            NotFound: Unknown assembly
            InvalidState: Assembly is not closed
        """
        return write_pdf(self.build_report(assembly_id), output_dir)

    def close(self) -> None:
        """Stop streaming and release database connections."""
        if self.channel:
            self.notifier.unsubscribe(self.channel.forward)
            self.channel.stop_streaming()
        self.engine.dispose()
