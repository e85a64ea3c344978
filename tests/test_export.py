"""Tests for the results report and its PDF export."""

import os
import re
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from fpdf import FPDF

from assemblinator.export.pdf import TIE_NOTE, ResultsPDF, render_pdf, write_pdf
from assemblinator.export.report import (
    AssemblyReport,
    ItemReport,
    build_report,
    report_filename,
    slugify,
)
from assemblinator.voting.errors import InvalidState, NotFound
from assemblinator.voting.tally import compute_tally


@pytest.fixture
def closed_assembly(app, admin, live_assembly, open_item, make_voter):
    """A closed assembly with one voted item and one item without ballots."""
    for n, choice in enumerate(["Sim", "Sim", "Não"]):
        app.ledger.cast_ballot(make_voter(n), open_item.id, choice)
    app.agenda.close_item(admin, open_item.id)
    app.agenda.add_item(
        admin, live_assembly.id, "Troca de empresa de portaria", ["Trocar", "Manter"],
        voting_mode="secret",
    )
    return app.assemblies.close(admin, live_assembly.id)


class TestSlugify:
    """Tests for file name slugs."""

    @pytest.mark.parametrize("title,expected", [
        ("Assembleia Geral Ordinária", "assembleia_geral_ordinaria"),
        ("AGE  -  Portaria & Segurança", "age__portaria__seguranca"),
        ("  Orçamento 2026  ", "orcamento_2026"),
        ("", ""),
    ])
    def test_slugify(self, title, expected):
        assert slugify(title) == expected


class TestBuildReport:
    """Tests for build_report."""

    def test_items_in_order_with_tallies(self, app, closed_assembly):
        """Every item appears in agenda order with its tally."""
        report = build_report(app.repo, app.results, closed_assembly.id)

        assert report.title == "Assembleia Geral Ordinária"
        assert [i.number for i in report.items] == [1, 2]
        first, second = report.items
        assert first.title == "Aprovação do orçamento 2026"
        assert first.description == "Deliberação sobre o orçamento anual."
        assert first.tally.winner == "Sim"
        assert first.tally.option("Sim").count == 2
        assert second.tally.total == 0
        assert second.tally.winner is None
        assert report.total_ballots == 3

    def test_requires_closed_assembly(self, app, live_assembly):
        """Reports are only for closed assemblies."""
        with pytest.raises(InvalidState) as exc_info:
            build_report(app.repo, app.results, live_assembly.id)
        assert exc_info.value.current == "in_progress"

    def test_missing_assembly(self, app):
        with pytest.raises(NotFound):
            build_report(app.repo, app.results, "missing")

    def test_filename_uses_generation_date(self, app, closed_assembly):
        generated = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)
        report = build_report(app.repo, app.results, closed_assembly.id, generated_at=generated)
        assert report_filename(report) == "assembleia_assembleia_geral_ordinaria_2026-10-19.pdf"


class TestRenderPdf:
    """Tests for PDF rendering."""

    def test_renders_pdf(self, app, closed_assembly):
        """Output is a PDF document."""
        report = build_report(app.repo, app.results, closed_assembly.id)
        content = render_pdf(report)
        assert content.startswith(b"%PDF")
        assert len(content) > 500

    def test_many_items_paginate(self, app, admin, live_assembly):
        """Long agendas spill onto further pages."""
        for n in range(12):
            app.agenda.add_item(admin, live_assembly.id, f"Pauta {n + 1}", ["Sim", "Não", "Abstenção"])
        app.assemblies.close(admin, live_assembly.id)

        content = render_pdf(build_report(app.repo, app.results, live_assembly.id))
        page_count = re.search(rb"/Count (\d+)", content)
        assert page_count is not None
        assert int(page_count.group(1)) > 1

    def test_no_items(self, app, admin, live_assembly):
        """An assembly without items still renders."""
        app.assemblies.close(admin, live_assembly.id)
        assert render_pdf(build_report(app.repo, app.results, live_assembly.id)).startswith(b"%PDF")

    @staticmethod
    def _rendered_cells(report):
        with patch.object(ResultsPDF, "cell", autospec=True, side_effect=FPDF.cell) as cell:
            render_pdf(report)
        return [c.args[3] for c in cell.call_args_list if len(c.args) > 3]

    @staticmethod
    def _single_item_report(counts):
        tally = compute_tally("item-1", "Pauta", ["Sim", "Não", "Abstenção"], counts, is_final=True)
        generated = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)
        return AssemblyReport(
            assembly_id="a-1",
            title="AGE",
            scheduled_at=generated,
            generated_at=generated,
            items=[ItemReport(number=1, title="Pauta", description="", tally=tally)],
        )

    def test_tie_is_noted(self):
        """A tied item still names the first option but says it was a tie."""
        cells = self._rendered_cells(self._single_item_report({"Sim": 2, "Não": 2}))
        assert "Sim (vencedora)" in cells
        assert TIE_NOTE in cells

    def test_clear_winner_has_no_tie_note(self):
        cells = self._rendered_cells(self._single_item_report({"Sim": 3, "Não": 1}))
        assert "Sim (vencedora)" in cells
        assert TIE_NOTE not in cells


class TestWritePdf:
    """Tests for writing the exported file."""

    def test_export_writes_file(self, app, closed_assembly, tmp_path):
        """The file lands in the output directory under the report name."""
        path = app.export_pdf(closed_assembly.id, str(tmp_path))
        assert os.path.basename(path).startswith("assembleia_assembleia_geral_ordinaria_")
        with open(path, "rb") as f:
            assert f.read(4) == b"%PDF"
        assert [p.name for p in tmp_path.iterdir()] == [os.path.basename(path)]

    def test_export_output_dir_from_env(self, app, closed_assembly, tmp_path, monkeypatch):
        monkeypatch.setenv("REPORT_OUTPUT_DIR", str(tmp_path / "reports"))
        path = app.export_pdf(closed_assembly.id)
        assert os.path.dirname(path) == str(tmp_path / "reports")

    def test_failed_render_leaves_nothing(self, app, closed_assembly, tmp_path):
        """A rendering failure writes no file at all."""
        report = build_report(app.repo, app.results, closed_assembly.id)
        with patch("assemblinator.export.pdf.render_pdf", side_effect=RuntimeError("font missing")):
            with pytest.raises(RuntimeError):
                write_pdf(report, str(tmp_path))
        assert list(tmp_path.iterdir()) == []

    def test_export_open_assembly_writes_nothing(self, app, live_assembly, tmp_path):
        with pytest.raises(InvalidState):
            app.export_pdf(live_assembly.id, str(tmp_path))
        assert list(tmp_path.iterdir()) == []
