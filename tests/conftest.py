"""Shared fixtures for Assemblinator tests."""

import os
import pytest
from datetime import datetime, timezone

from sqlalchemy import create_engine

# Set test environment variables before imports
os.environ.setdefault('ENCRYPTION_KEY', 'test_encryption_key_16chars')
os.environ.setdefault('TIMEZONE', 'UTC')
os.environ.setdefault('ALLOW_UNENCRYPTED_DB', 'true')

from assemblinator.app import Assemblinator
from assemblinator.database.engine import configure_sqlite_engine, create_database_engine
from assemblinator.database.repository import AssemblyRepository
from assemblinator.notify.notifier import ChangeNotifier
from assemblinator.voting.types import Actor, Role, TiePolicy


@pytest.fixture
def engine():
    """In-memory SQLite engine."""
    engine = create_database_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def repo(engine):
    """Repository over a fresh in-memory database."""
    return AssemblyRepository(engine)


@pytest.fixture
def notifier():
    """In-process change notifier."""
    return ChangeNotifier()


@pytest.fixture
def events(notifier):
    """Every change event published during the test, in order."""
    received = []
    notifier.subscribe_all(received.append)
    return received


@pytest.fixture
def app(engine, notifier, monkeypatch):
    """Application wired to the in-memory database, without a realtime channel."""
    monkeypatch.delenv('REALTIME_URL', raising=False)
    return Assemblinator(engine=engine, notifier=notifier, tie_policy=TiePolicy.FIRST_DECLARED)


@pytest.fixture
def sample_condominium_id():
    """Sample condominium id."""
    return "condo-0001"


@pytest.fixture
def sample_scheduled_at():
    """Sample meeting date."""
    return datetime(2026, 11, 5, 19, 0, tzinfo=timezone.utc)


@pytest.fixture
def admin():
    """Actor allowed to manage assemblies."""
    return Actor(voter_id="admin-uuid-0001", role=Role.ADMIN)


@pytest.fixture
def resident():
    """Regular resident."""
    return Actor(voter_id="resident-uuid-0001", role=Role.MORADOR)


@pytest.fixture
def make_voter():
    """Factory for distinct resident actors."""
    def _make(n: int) -> Actor:
        return Actor(voter_id=f"voter-{n:04d}", role=Role.MORADOR)
    return _make


@pytest.fixture
def scheduled_assembly(app, admin, sample_condominium_id, sample_scheduled_at):
    """A scheduled assembly."""
    return app.assemblies.create_assembly(
        admin,
        sample_condominium_id,
        "Assembleia Geral Ordinária",
        sample_scheduled_at,
        agenda_topics=["Abertura", "Ordem do dia"],
    )


@pytest.fixture
def live_assembly(app, admin, scheduled_assembly):
    """An in-progress assembly."""
    return app.assemblies.start(admin, scheduled_assembly.id)


@pytest.fixture
def open_item(app, admin, live_assembly):
    """An agenda item open for voting with options Sim / Não / Abstenção."""
    item = app.agenda.add_item(
        admin,
        live_assembly.id,
        "Aprovação do orçamento 2026",
        ["Sim", "Não", "Abstenção"],
        description="Deliberação sobre o orçamento anual.",
    )
    return app.agenda.open_item(admin, item.id)


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    """Application over a SQLite file, shared safely between threads."""
    monkeypatch.delenv('REALTIME_URL', raising=False)
    engine = configure_sqlite_engine(create_engine(
        f"sqlite:///{tmp_path / 'assemblies.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    ))
    app = Assemblinator(engine=engine, tie_policy=TiePolicy.FIRST_DECLARED)
    yield app
    app.close()


@pytest.fixture
def file_assembly(file_app, admin, sample_condominium_id, sample_scheduled_at):
    """An in-progress assembly in the file-backed database."""
    assembly = file_app.assemblies.create_assembly(
        admin, sample_condominium_id, "AGE", sample_scheduled_at
    )
    return file_app.assemblies.start(admin, assembly.id)
