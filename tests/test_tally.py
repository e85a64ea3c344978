"""Tests for tally computation."""

import pytest

from assemblinator.voting.errors import NotFound
from assemblinator.voting.tally import ResultsAggregator, compute_tally
from assemblinator.voting.types import TiePolicy

OPTIONS = ["Sim", "Não", "Abstenção"]


class TestComputeTally:
    """Tests for the pure compute_tally function."""

    def test_plurality_winner(self):
        """Sim 2 / Não 1 -> Sim wins with two thirds."""
        result = compute_tally("i-1", "Orçamento", OPTIONS, {"Sim": 2, "Não": 1})
        assert result.total == 3
        assert result.winner == "Sim"
        assert not result.tied
        assert result.option("Sim").percentage == pytest.approx(66.67, abs=0.01)
        assert result.option("Não").percentage == pytest.approx(33.33, abs=0.01)
        assert result.option("Abstenção").count == 0
        assert result.option("Abstenção").percentage == 0.0

    def test_keeps_declared_order(self):
        """Options come back in declared order, not by count."""
        result = compute_tally("i-1", "T", OPTIONS, {"Abstenção": 5, "Sim": 1})
        assert [o.label for o in result.options] == OPTIONS

    def test_zero_ballots(self):
        """No ballots: zero percentages and no winner."""
        result = compute_tally("i-1", "T", OPTIONS, {})
        assert result.total == 0
        assert result.winner is None
        assert not result.tied
        assert all(o.count == 0 and o.percentage == 0.0 for o in result.options)

    def test_counts_and_percentages_sum(self):
        """Counts add up to the total; percentages to 100."""
        result = compute_tally("i-1", "T", OPTIONS, {"Sim": 7, "Não": 5, "Abstenção": 1})
        assert sum(o.count for o in result.options) == result.total
        assert sum(o.percentage for o in result.options) == pytest.approx(100.0, abs=0.1)

    def test_tie_first_declared(self):
        """Default policy picks the first tied option in declared order."""
        result = compute_tally("i-1", "T", OPTIONS, {"Não": 2, "Sim": 2})
        assert result.tied
        assert result.winner == "Sim"

    def test_tie_no_winner(self):
        """NO_WINNER reports the tie without a winner."""
        result = compute_tally("i-1", "T", OPTIONS, {"Não": 2, "Sim": 2}, tie_policy=TiePolicy.NO_WINNER)
        assert result.tied
        assert result.winner is None

    def test_no_winner_policy_without_tie(self):
        """NO_WINNER only matters when there is a tie."""
        result = compute_tally("i-1", "T", OPTIONS, {"Sim": 3, "Não": 2}, tie_policy=TiePolicy.NO_WINNER)
        assert result.winner == "Sim"


class TestTiePolicyFromEnv:
    """Tests for TiePolicy.from_env."""

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TALLY_TIE_POLICY", raising=False)
        assert TiePolicy.from_env() == TiePolicy.FIRST_DECLARED

    def test_no_winner(self, monkeypatch):
        monkeypatch.setenv("TALLY_TIE_POLICY", "NO_WINNER")
        assert TiePolicy.from_env() == TiePolicy.NO_WINNER

    def test_unknown_falls_back(self, monkeypatch):
        monkeypatch.setenv("TALLY_TIE_POLICY", "coin_flip")
        assert TiePolicy.from_env() == TiePolicy.FIRST_DECLARED


class TestResultsAggregator:
    """Tests for tallies read from the ballot ledger."""

    def test_live_tally(self, app, open_item, make_voter):
        """Two Sim and one Não."""
        for n, choice in enumerate(["Sim", "Não", "Sim"]):
            app.ledger.cast_ballot(make_voter(n), open_item.id, choice)

        result = app.results.compute_tally(open_item.id)
        assert result.total == 3
        assert result.winner == "Sim"
        assert result.option("Sim").count == 2
        assert result.option("Não").count == 1
        assert not result.is_final

    def test_final_after_close(self, app, admin, open_item, make_voter):
        """Closing the item makes the tally final."""
        app.ledger.cast_ballot(make_voter(1), open_item.id, "Não")
        app.agenda.close_item(admin, open_item.id)
        result = app.results.compute_tally(open_item.id)
        assert result.is_final
        assert result.winner == "Não"

    def test_tally_unknown_item(self, app):
        with pytest.raises(NotFound):
            app.results.compute_tally("missing")

    def test_live_tallies_in_agenda_order(self, app, admin, live_assembly, open_item):
        """One tally per item, in agenda order."""
        app.agenda.add_item(admin, live_assembly.id, "Portaria", ["Trocar", "Manter"])
        results = app.results.live_tallies(live_assembly.id)
        assert [r.title for r in results] == ["Aprovação do orçamento 2026", "Portaria"]
        assert results[1].total == 0

    def test_cancelled_assembly_shows_nothing(self, app, admin, open_item, make_voter):
        """Cancelled assemblies display no results; ballots stay stored."""
        app.ledger.cast_ballot(make_voter(1), open_item.id, "Sim")
        app.assemblies.cancel(admin, open_item.assembly_id)

        assert app.results.live_tallies(open_item.assembly_id) == []
        assert app.ledger.count_ballots(open_item.id) == 1
        audit = app.results.tallies_for_assembly(open_item.assembly_id)
        assert audit[0].total == 1

    def test_aggregator_tie_policy(self, repo, app, open_item, make_voter):
        """The aggregator applies its configured tie policy."""
        app.ledger.cast_ballot(make_voter(1), open_item.id, "Sim")
        app.ledger.cast_ballot(make_voter(2), open_item.id, "Não")

        assert app.results.compute_tally(open_item.id).winner == "Sim"
        strict = ResultsAggregator(repo, tie_policy=TiePolicy.NO_WINNER)
        result = strict.compute_tally(open_item.id)
        assert result.tied
        assert result.winner is None
