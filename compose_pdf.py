"""
PDF Report Generator for the District Revenue Disparities Analysis

This module lays the aggregate tables and charts out as a PDF:
- Section 1: Revenue per pupil by racial-composition bin
- Section 2: Concentrated (majority-black / majority-nonwhite) vs majority-white districts
- Section 3: National and per-state comparison for the average student of each group
- Section 4: Revenue by source
- Appendix: Methods, linking counts and association tests

Each section is a dict {title, subtitle, blocks} where blocks are
("image", Path) / ("table", Table) / ("para", str) pairs, built by
build_sections() and rendered by build_pdf().
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
import pandas as pd
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Image, KeepInFrame, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from district_shared import fmt_dollars, fmt_count, fmt_pct, NOT_CONCENTRATED

# ===== Figure and Table Counters =====
_FIGURE_COUNTER = 0
_TABLE_COUNTER = 0

def next_figure_number():
    """Get the next figure number and increment counter."""
    global _FIGURE_COUNTER
    _FIGURE_COUNTER += 1
    return _FIGURE_COUNTER

def next_table_number():
    """Get the next table number and increment counter."""
    global _TABLE_COUNTER
    _TABLE_COUNTER += 1
    return _TABLE_COUNTER

def reset_counters():
    """Reset figure and table counters (called at start of PDF generation)."""
    global _FIGURE_COUNTER, _TABLE_COUNTER
    _FIGURE_COUNTER = 0
    _TABLE_COUNTER = 0

# ---- Styles ----
styles = getSampleStyleSheet()
style_title_main = ParagraphStyle("title_main", parent=styles["Heading1"], fontSize=14, leading=17, spaceAfter=2)
style_title_sub  = ParagraphStyle("title_sub",  parent=styles["Normal"],   fontSize=11, leading=14, spaceAfter=6)
style_body       = ParagraphStyle("body",       parent=styles["Normal"],   fontSize=9,  leading=12)
style_num        = ParagraphStyle("num",        parent=styles["Normal"],   fontSize=9,  leading=12, alignment=2)
style_hdr_left   = ParagraphStyle("hdr_left",   parent=styles["Normal"],   fontSize=9,  leading=12, alignment=0, fontName="Helvetica-Bold")
style_hdr_right  = ParagraphStyle("hdr_right",  parent=styles["Normal"],   fontSize=9,  leading=12, alignment=2, fontName="Helvetica-Bold")
style_figure_num = ParagraphStyle("figure_num", parent=styles["Normal"],   fontSize=8,  leading=10, alignment=2, fontName='Helvetica-Oblique', backColor=colors.HexColor("#F5F5F5"))
style_table_num  = ParagraphStyle("table_num",  parent=styles["Normal"],   fontSize=8,  leading=10, alignment=2, fontName='Helvetica-Oblique', backColor=colors.HexColor("#F5F5F5"))

NEG_COLOR        = HexColor("#3F51B5")
style_num_neg    = ParagraphStyle("num_neg", parent=style_num, textColor=NEG_COLOR)
HEADER_BG        = HexColor("#E8EEF4")

# Footer
SOURCE_LINE = "Source: Urban Institute Education Data Portal (NCES CCD finance, enrollment, directory); district cost-of-living index"

def draw_footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 7)
    y1 = 0.35 * inch
    canvas.drawString(doc.leftMargin, y1, SOURCE_LINE)
    x_right = doc.pagesize[0] - doc.rightMargin
    canvas.drawRightString(x_right, y1, f"Page {canvas.getPageNumber()}")
    canvas.restoreState()

# ---- Table helpers ----
# Column spec: (header, column name, formatter)
ColumnSpec = List[Tuple[str, str, Callable]]

def _fmt_label(v) -> str:
    return "Not concentrated" if v == NOT_CONCENTRATED else str(v)

def _bin_label(v) -> str:
    return f"{int(v) - 10}–{int(v)}%"

def _cell(text: str, numeric: bool) -> Paragraph:
    if numeric:
        return Paragraph(text, style_num_neg if text.startswith("-") or text.startswith("$-") else style_num)
    return Paragraph(text, style_body)

def dataframe_table(df: pd.DataFrame, columns: ColumnSpec, doc_width: float) -> Table:
    """
    Render selected DataFrame columns as a reportlab Table.

    The first column is left aligned; every other column is treated as
    numeric and right aligned. Negative values use NEG_COLOR.
    """
    header = [Paragraph(columns[0][0], style_hdr_left)] + [Paragraph(h, style_hdr_right) for h, _, _ in columns[1:]]
    data = [header]
    for _, row in df.iterrows():
        data.append([_cell(fmt(row[col]), i > 0) for i, (_, col, fmt) in enumerate(columns)])

    first_w = doc_width * 0.28
    rest_w = (doc_width - first_w) / max(1, len(columns) - 1)
    t = Table(data, colWidths=[first_w] + [rest_w] * (len(columns) - 1), repeatRows=1)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
        ("LINEBELOW", (0, 0), (-1, 0), 0.6, colors.grey),
        ("LINEBELOW", (0, -1), (-1, -1), 0.4, colors.lightgrey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))
    return t

def bin_columns(bin_col: str, label: str) -> ColumnSpec:
    return [
        (label, bin_col, _bin_label),
        ("Districts", "districts", fmt_count),
        ("Students", "students", fmt_count),
        ("$/pupil", "revenue_per_pupil", fmt_dollars),
        ("State+local $/pupil", "state_local_per_pupil", fmt_dollars),
    ]

def concentration_columns(col: str) -> ColumnSpec:
    return [
        ("Majority", col, _fmt_label),
        ("Districts", "districts", fmt_count),
        ("Students", "students", fmt_count),
        ("$/pupil", "revenue_per_pupil", fmt_dollars),
        ("vs white", "pct_difference_vs_white", fmt_pct),
    ]

NATIONAL_COLUMNS = [
    ("Students", "group", str),
    ("Count", "students", fmt_count),
    ("$/pupil", "revenue_per_pupil", fmt_dollars),
    ("State+local $/pupil", "state_local_per_pupil", fmt_dollars),
    ("vs white", "pct_difference_vs_white", fmt_pct),
]

STATE_COLUMNS = [
    ("State", "state", str),
    ("Black $/pupil", "black_per_pupil", fmt_dollars),
    ("Nonwhite $/pupil", "nonwhite_per_pupil", fmt_dollars),
    ("White $/pupil", "white_per_pupil", fmt_dollars),
    ("Black vs white", "black_vs_white_pct", fmt_pct),
    ("Nonwhite vs white", "nonwhite_vs_white_pct", fmt_pct),
]

def source_columns(col: str) -> ColumnSpec:
    return [
        ("Category", col, _fmt_label),
        ("Students", "students", fmt_count),
        ("Federal", "Federal", fmt_dollars),
        ("State", "State", fmt_dollars),
        ("Local", "Local", fmt_dollars),
        ("Total", "Total", fmt_dollars),
    ]

# ---- Page assembly ----
def build_sections(reports: Dict[str, pd.DataFrame], charts: Dict[str, Path], counts: Dict[str, int],
                   year: int, vintage: str, stats_paragraphs: Optional[List[str]] = None) -> List[dict]:
    """Build section dicts (title, subtitle, blocks) in report order."""
    w = A4[0] - 1.0 * inch
    sy = f"{year}–{str(year + 1)[-2:]}"

    sections = [
        {
            "title": f"District Revenue per Pupil by Race, {sy}",
            "subtitle": "Enrollment-weighted revenue per pupil by share of black and nonwhite students",
            "blocks": [
                ("image", charts.get("revenue_by_black_bin")),
                ("table", dataframe_table(reports["revenue_by_black_bin"], bin_columns("black_bin", "% black"), w)),
                ("image", charts.get("revenue_by_nonwhite_bin")),
                ("table", dataframe_table(reports["revenue_by_nonwhite_bin"], bin_columns("nonwhite_bin", "% nonwhite"), w)),
            ],
        },
        {
            "title": "Concentrated Districts",
            "subtitle": "Districts where at least 75% of students are black (or nonwhite) compared with districts that are at least 75% white",
            "blocks": [
                ("image", charts.get("black_vs_white_districts")),
                ("table", dataframe_table(reports["black_vs_white_districts"], concentration_columns("concentration_by_black"), w)),
                ("image", charts.get("nonwhite_vs_white_districts")),
                ("table", dataframe_table(reports["nonwhite_vs_white_districts"], concentration_columns("concentration_by_nonwhite"), w)),
            ],
        },
        {
            "title": "The Average Student",
            "subtitle": "Revenue per pupil in the district of the average black, nonwhite and white student, nationally and by state",
            "blocks": [
                ("table", dataframe_table(reports["student_weighted_national"], NATIONAL_COLUMNS, w)),
                ("image", charts.get("state_black_vs_white")),
                ("image", charts.get("state_nonwhite_vs_white")),
                ("table", dataframe_table(reports["state_comparison"], STATE_COLUMNS, w)),
            ],
        },
        {
            "title": "Revenue by Source",
            "subtitle": "Federal, state and local revenue per pupil by concentration category",
            "blocks": [
                ("image", charts.get("revenue_by_source_black")),
                ("table", dataframe_table(reports["revenue_by_source_black"], source_columns("concentration_by_black"), w)),
                ("image", charts.get("revenue_by_source_nonwhite")),
                ("table", dataframe_table(reports["revenue_by_source_nonwhite"], source_columns("concentration_by_nonwhite"), w)),
            ],
        },
        {
            "title": "Appendix: Methods",
            "subtitle": f"School year {sy}, data vintage {vintage}",
            "blocks": [("para", p) for p in methods_paragraphs(counts)]
                      + [("image", charts.get("scatter_nonwhite"))]
                      + [("para", p) for p in (stats_paragraphs or [])],
        },
    ]
    return sections


def methods_paragraphs(counts: Dict[str, int]) -> List[str]:
    c = lambda k: f"{counts.get(k, 0):,}"
    return [
        "<b>Adjusted revenue.</b> State revenue excludes capital outlay and debt service; local revenue "
        "excludes proceeds from sale of property. Payments to charter schools are removed from each source "
        "in proportion to that source's share of unadjusted total revenue.",
        "<b>Federal share note.</b> The charter deduction from federal revenue is weighted by the state "
        "revenue share rather than the federal share. This follows the published methodology exactly and "
        "is reported here rather than corrected.",
        "<b>Cost of living.</b> All revenue figures are multiplied by the district's cost-of-living "
        "multiplier before per-pupil figures are computed.",
        "<b>Weighting.</b> Group figures are total revenue divided by total pupils in the group, so large "
        "districts count in proportion to their enrollment. Student-group figures weight each district's "
        "per-pupil revenue by that group's enrollment there.",
        "<b>Concentration.</b> Majority nonwhite: at least 75% nonwhite; majority white: at most 25% nonwhite. "
        "Majority black: at least 75% black; majority white (black comparison): at least 75% white. "
        "Bins are right-inclusive: a district at exactly 50% falls in the 40–50% bin.",
        f"<b>Linking.</b> {c('enrollment_districts')} districts with enrollment, {c('finance_districts')} with "
        f"finance data and {c('cola_districts')} with a cost-of-living index. {c('dropped_no_cola')} districts "
        f"without a cost-of-living index were dropped at the join; {c('dropped_filter')} had no pupils or "
        f"negative revenue; {c('dropped_missing')} had missing values. {c('linked')} districts remain.",
    ]


def build_pdf(sections: List[dict], out_path: Path):
    reset_counters()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    doc = SimpleDocTemplate(str(out_path), pagesize=A4,
        leftMargin=0.5*inch, rightMargin=0.5*inch, topMargin=0.5*inch, bottomMargin=0.6*inch)

    story: List = []
    for idx, sec in enumerate(sections):
        story.append(Paragraph(sec["title"], style_title_main))
        story.append(Paragraph(sec["subtitle"], style_title_sub))
        story.append(HRFlowable(width="100%", thickness=0.5, color=colors.lightgrey, spaceBefore=0, spaceAfter=6))

        for kind, payload in sec["blocks"]:
            if kind == "image":
                if payload is None or not Path(payload).exists():
                    continue
                story.append(Paragraph(f"<i>Figure {next_figure_number()}</i>", style_figure_num))
                story.append(KeepInFrame(doc.width, doc.height * 0.55, [_scaled_image(Path(payload), doc.width, doc.height * 0.55)]))
                story.append(Spacer(0, 8))
            elif kind == "table":
                story.append(Paragraph(f"<i>Table {next_table_number()}</i>", style_table_num))
                story.append(Spacer(0, 3))
                story.append(payload)
                story.append(Spacer(0, 12))
            elif kind == "para":
                story.append(Paragraph(payload, style_body))
                story.append(Spacer(0, 6))

        if idx < len(sections) - 1:
            story.append(PageBreak())

    doc.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    print(f"[OK] Saved {out_path}")
    return out_path


def _scaled_image(path: Path, max_w: float, max_h: float) -> Image:
    im = Image(str(path))
    scale = min(max_w / im.imageWidth, max_h / im.imageHeight, 1.0)
    im.drawWidth = im.imageWidth * scale
    im.drawHeight = im.imageHeight * scale
    return im
