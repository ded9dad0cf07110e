"""
src/atlas_infra/report/report_pdf.py

Exportação do report de apply (Markdown e PDF).

Regras:
- O conteúdo vem exclusivamente de `generate_report_md` (Manifest final).
- Nenhuma inferência nem recálculo; o PDF é apenas outra renderização
  do mesmo report.md.
- O PDF usa reportlab (extra `pdf`); sem reportlab a exportação em PDF
  falha explicitamente e o report.md continua disponível.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from .report_md import generate_report_md


_BOLD = re.compile(r"\*\*(.+?)\*\*")
_CODE = re.compile(r"`([^`]+)`")


def _inline_markup(text: str) -> str:
    """Converte negrito e código inline do Markdown para a marcação do reportlab."""
    out = escape(text)
    out = _BOLD.sub(r"<b>\1</b>", out)
    return _CODE.sub(r'<font name="Courier">\1</font>', out)


def render_report_pdf(md_text: str, pdf_path: Path) -> Path:
    """
    Renderiza um report.md (texto) em PDF A4.

    Suporta o subconjunto de Markdown produzido por `generate_report_md`:
    títulos (#, ##, ###), listas (`- `), blocos ```json``` e texto simples.
    """
    try:
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import Paragraph, Preformatted, SimpleDocTemplate, Spacer
    except ImportError as e:  # pragma: no cover
        raise RuntimeError("reportlab is required to export report.pdf (pip install atlas-infra[pdf])") from e

    styles = getSampleStyleSheet()
    story: List[Any] = []
    code_block: Optional[List[str]] = None

    for line in md_text.splitlines():
        if line.startswith("```"):
            if code_block is None:
                code_block = []
            else:
                story.append(Preformatted("\n".join(code_block), styles["Code"]))
                code_block = None
            continue
        if code_block is not None:
            code_block.append(line)
            continue

        stripped = line.strip()
        if not stripped:
            story.append(Spacer(1, 8))
        elif stripped.startswith("### "):
            story.append(Paragraph(_inline_markup(stripped[4:]), styles["Heading3"]))
        elif stripped.startswith("## "):
            story.append(Paragraph(_inline_markup(stripped[3:]), styles["Heading2"]))
        elif stripped.startswith("# "):
            story.append(Paragraph(_inline_markup(stripped[2:]), styles["Heading1"]))
        elif stripped.startswith("- "):
            story.append(Paragraph(_inline_markup(stripped[2:]), styles["Normal"], bulletText="•"))
        else:
            story.append(Paragraph(_inline_markup(stripped), styles["Normal"]))

    # bloco não fechado: renderiza o que houver
    if code_block:
        story.append(Preformatted("\n".join(code_block), styles["Code"]))

    pdf_path = Path(pdf_path)
    pdf_path.parent.mkdir(parents=True, exist_ok=True)
    doc = SimpleDocTemplate(
        str(pdf_path),
        pagesize=A4,
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=36,
        title="Apply Report",
    )
    doc.build(story)
    return pdf_path


def export_report(manifest: Dict[str, Any], out_dir: Path, *, pdf: bool = False) -> Dict[str, Path]:
    """
    Escreve `report.md` (e opcionalmente `report.pdf`) em `out_dir`.

    Returns:
        Dict com os caminhos gerados (`md` e, se pedido, `pdf`).
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    md_text = generate_report_md(manifest)
    md_path = out_dir / "report.md"
    md_path.write_text(md_text, encoding="utf-8")

    paths = {"md": md_path}
    if pdf:
        paths["pdf"] = render_report_pdf(md_text, out_dir / "report.pdf")
    return paths
