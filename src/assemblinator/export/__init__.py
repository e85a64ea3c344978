"""Report Exporter: results report data and its PDF rendering."""

from .report import AssemblyReport, ItemReport, build_report, report_filename, slugify
from .pdf import render_pdf, write_pdf

__all__ = [
    "AssemblyReport",
    "ItemReport",
    "build_report",
    "report_filename",
    "slugify",
    "render_pdf",
    "write_pdf",
]
