"""PDF rendering of an assembly results report."""

import os
import tempfile

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from ..logging import get_logger
from ..utils.timezone import format_datetime_long, format_datetime_short
from .report import AssemblyReport, ItemReport, report_filename

logger = get_logger(__name__)

MARGIN = 20
BAR_WIDTH = 80
BAR_HEIGHT = 8

WINNER_TEXT = (0, 128, 0)
WINNER_BAR = (34, 197, 94)
OTHER_BAR = (147, 51, 234)
BAR_BACKGROUND = (240, 240, 240)

TIE_NOTE = "Empate entre as opções mais votadas"


def _latin1(text: str) -> str:
    # Core fonts only cover latin-1.
    return (text or "").encode("latin-1", "replace").decode("latin-1")


class ResultsPDF(FPDF):
    """A4 portrait document with the generation stamp on every page."""

    def __init__(self, footer_text: str):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.footer_text = footer_text
        self.set_margins(MARGIN, MARGIN, MARGIN)
        self.set_auto_page_break(auto=True, margin=MARGIN)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(150)
        self.cell(0, 10, _latin1(self.footer_text), align="C")

    def ensure_space(self, needed: float) -> None:
        """Start a new page unless `needed` mm fit above the bottom margin."""
        if self.get_y() + needed > self.h - MARGIN:
            self.add_page()


def _write_header(pdf: ResultsPDF, report: AssemblyReport) -> None:
    pdf.set_font("Helvetica", "B", 18)
    pdf.set_text_color(0)
    pdf.cell(0, 10, "Resultados da Assembleia", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("Helvetica", "", 12)
    pdf.multi_cell(0, 6, _latin1(report.title), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("Helvetica", "", 10)
    pdf.set_text_color(100)
    pdf.cell(
        0, 6, _latin1(format_datetime_long(report.scheduled_at)),
        align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
    )
    pdf.ln(6)

    pdf.set_draw_color(200)
    pdf.line(MARGIN, pdf.get_y(), pdf.w - MARGIN, pdf.get_y())
    pdf.ln(10)


def _write_item(pdf: ResultsPDF, item: ItemReport) -> None:
    tally = item.tally
    pdf.ensure_space(50)

    pdf.set_font("Helvetica", "B", 14)
    pdf.set_text_color(0)
    pdf.multi_cell(0, 7, _latin1(f"{item.number}. {item.title}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    if item.description:
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(60)
        pdf.multi_cell(0, 5, _latin1(item.description), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(2)

    pdf.set_font("Helvetica", "I", 10)
    pdf.set_text_color(100)
    pdf.cell(0, 8, f"Total de votos: {tally.total}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    for option in tally.options:
        pdf.ensure_space(20)
        is_winner = tally.winner is not None and option.label == tally.winner
        x = MARGIN + 5

        label = f"{option.label} (vencedora)" if is_winner else option.label
        pdf.set_font("Helvetica", "B" if is_winner else "", 11)
        pdf.set_text_color(*(WINNER_TEXT if is_winner else (0, 0, 0)))
        pdf.set_x(x)
        pdf.cell(0, 6, _latin1(label), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        bar_y = pdf.get_y()
        pdf.set_fill_color(*BAR_BACKGROUND)
        pdf.rect(x, bar_y, BAR_WIDTH, BAR_HEIGHT, style="F")
        fill_width = option.percentage / 100 * BAR_WIDTH
        if fill_width > 0:
            pdf.set_fill_color(*(WINNER_BAR if is_winner else OTHER_BAR))
            pdf.rect(x, bar_y, fill_width, BAR_HEIGHT, style="F")

        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(0)
        pdf.set_xy(x + BAR_WIDTH + 5, bar_y)
        pdf.cell(0, BAR_HEIGHT, f"{option.count} votos ({option.percentage:.1f}%)")
        pdf.set_xy(MARGIN, bar_y + BAR_HEIGHT + 4)

    if tally.tied:
        pdf.set_font("Helvetica", "I", 10)
        pdf.set_text_color(100)
        pdf.cell(0, 6, _latin1(TIE_NOTE), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(5)


def render_pdf(report: AssemblyReport) -> bytes:
    """Render a report as a paginated PDF.

    Items with no ballots render 0% bars and no winner marker. Tied items
    carry a note under their options.

    Returns:
        PDF document bytes
    """
    pdf = ResultsPDF(f"Documento gerado em {format_datetime_short(report.generated_at)}")
    pdf.add_page()
    _write_header(pdf, report)

    for index, item in enumerate(report.items):
        _write_item(pdf, item)
        if index < len(report.items) - 1:
            pdf.ensure_space(5)
            pdf.set_draw_color(220)
            pdf.line(MARGIN, pdf.get_y(), pdf.w - MARGIN, pdf.get_y())
            pdf.ln(10)

    return bytes(pdf.output())


def write_pdf(report: AssemblyReport, output_dir: str = None) -> str:
    """Render a report and write it to output_dir.

    The document is fully rendered before anything touches the
    destination, then written to a temporary file in the same directory
    and renamed into place, so a failure never leaves a partial file.

    Args:
        report: Report to render
        output_dir: Destination directory (default REPORT_OUTPUT_DIR env or cwd)

    Returns:
        Path of the written file
    """
    output_dir = output_dir or os.getenv("REPORT_OUTPUT_DIR") or os.getcwd()
    os.makedirs(output_dir, exist_ok=True)

    content = render_pdf(report)
    path = os.path.join(output_dir, report_filename(report))

    fd, tmp_path = tempfile.mkstemp(dir=output_dir, suffix=".pdf.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.info(f"Exported results of assembly {report.assembly_id} to {path}")
    return path
