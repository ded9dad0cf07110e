"""Relatórios derivados do Manifest de apply."""

from .report_md import REQUIRED_SECTIONS, generate_report_md
from .report_pdf import export_report, render_report_pdf

__all__ = ["REQUIRED_SECTIONS", "export_report", "generate_report_md", "render_report_pdf"]
