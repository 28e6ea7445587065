"""
Plotting Module for the Revenue Disparities Report

Renders the aggregate report tables to PNG:
1. Revenue per pupil by % black / % nonwhite bin (vertical bars)
2. Concentrated districts: black or nonwhite vs white (vertical bars + student counts)
3. Per-state student-weighted comparison (horizontal grouped bars)
4. Revenue per pupil by source for each concentration category (stacked bars)
5. District scatter of revenue per pupil vs % nonwhite, with fitted line

The per-state chart is horizontal; its figure height scales with the row count.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter

from district_shared import (
    CONCENTRATION_COLORS, SOURCE_COLORS, BIN_BAR_COLOR, SCATTER_COLOR,
    SOURCE_COLUMNS, compute_dollar_ylim,
)

# Version stamp
CODE_VERSION = "v2026.10-REVENUE-RACE"


def _boost_plot_fonts():
    plt.rcParams.update({
        "font.size": 14,
        "axes.labelsize": 16,
        "axes.titlesize": 18,
        "xtick.labelsize": 12,
        "ytick.labelsize": 12,
        "legend.fontsize": 12,
    })

def dollar_formatter():
    """Returns formatter that uses K for thousands."""
    def format_func(x, _):
        if abs(x) >= 1000:
            return f"${x/1000:,.0f}K"
        return f"${x:,.0f}"
    return FuncFormatter(format_func)

def _stamp(fig, note: str = "", y_pos=0.01):
    """Add source/version stamp to figure."""
    text = f"{note}  |  Code: {CODE_VERSION}" if note else f"Code: {CODE_VERSION}"
    fig.text(0.99, y_pos, text, ha="right", va="bottom", fontsize=9, color="#666666")

def _save(fig, out_path: Path, note: str = ""):
    out_path.parent.mkdir(parents=True, exist_ok=True)
    _stamp(fig, note)
    fig.savefig(out_path, dpi=200, bbox_inches="tight")
    plt.close(fig)
    print(f"[OK] Saved {str(out_path)}")
    return out_path

def _clean_axes(ax):
    for side in ("top", "right"):
        ax.spines[side].set_visible(False)


def plot_revenue_by_bin(out_path: Path, table: pd.DataFrame, bin_column: str, title: str,
                        xlabel: str, ylim: float | None = None, note: str = "") -> Optional[Path]:
    """
    Bar chart of weighted revenue per pupil for each 10-point bin.

    Args:
        table: Output of aggregate_reports.revenue_by_bin
        bin_column: 'black_bin' or 'nonwhite_bin'
        ylim: Optional shared y-axis limit so black and nonwhite charts compare directly
    """
    if table is None or table.empty:
        print(f"[SKIP] No bin data for {out_path}")
        return None
    _boost_plot_fonts()

    labels = [f"{int(b) - 10}–{int(b)}%" for b in table[bin_column]]
    vals = table["revenue_per_pupil"].fillna(0.0).values
    x = np.arange(len(labels))

    fig, ax = plt.subplots(figsize=(11.8, 6.8))
    bars = ax.bar(x, vals, color=BIN_BAR_COLOR, width=0.75, edgecolor="white", linewidth=0.5)
    for rect, n in zip(bars, table["districts"]):
        if n:
            ax.annotate(f"n={int(n):,}", (rect.get_x() + rect.get_width() / 2, rect.get_height()),
                        xytext=(0, 4), textcoords="offset points", ha="center", fontsize=10, color="#444444")

    ax.set_xticks(x)
    ax.set_xticklabels(labels, rotation=0)
    ax.set_xlabel(xlabel)
    ax.set_ylabel("Revenue per pupil (COLA-adjusted)")
    ax.yaxis.set_major_formatter(dollar_formatter())
    if ylim is not None:
        ax.set_ylim(0, ylim)
    _clean_axes(ax)
    ax.set_title(title, fontweight="bold")
    return _save(fig, out_path, note)


def plot_concentration_comparison(out_path: Path, table: pd.DataFrame, concentration_column: str,
                                  title: str, note: str = "") -> Optional[Path]:
    """Per-pupil revenue bars for concentrated districts, labeled with student counts."""
    if table is None or table.empty:
        print(f"[SKIP] No concentrated districts for {out_path}")
        return None
    _boost_plot_fonts()

    cats = table[concentration_column].tolist()
    vals = table["revenue_per_pupil"].values
    colors = [CONCENTRATION_COLORS.get(c, "#999999") for c in cats]

    x = np.arange(len(cats))
    fig, ax = plt.subplots(figsize=(8.5, 6.8))
    bars = ax.bar(x, vals, color=colors, width=0.6)
    for rect, val, students in zip(bars, vals, table["students"]):
        ax.annotate(f"${val:,.0f}\n{students:,.0f} students",
                    (rect.get_x() + rect.get_width() / 2, rect.get_height()),
                    xytext=(0, 4), textcoords="offset points", ha="center", fontsize=11)

    ax.set_xticks(x)
    ax.set_xticklabels([f"Majority {c}" for c in cats])
    ax.set_ylabel("Revenue per pupil (COLA-adjusted)")
    ax.yaxis.set_major_formatter(dollar_formatter())
    ax.set_ylim(0, compute_dollar_ylim([table], "revenue_per_pupil", pad=1.18))
    _clean_axes(ax)
    ax.set_title(title, fontweight="bold")
    return _save(fig, out_path, note)


def plot_state_comparison(out_path: Path, state_table: pd.DataFrame, group: str, title: str,
                          note: str = "") -> Optional[Path]:
    """
    Horizontal grouped bars: `group` (black|nonwhite) vs white revenue per pupil by state.

    States with no pupils of `group` are left out.
    """
    col = f"{group}_per_pupil"
    if state_table is None or state_table.empty:
        print(f"[SKIP] No state data for {out_path}")
        return None
    data = state_table.dropna(subset=[col, "white_per_pupil"]).sort_values("state", ascending=False)
    if data.empty:
        print(f"[SKIP] No states with both {group} and white students for {out_path}")
        return None
    _boost_plot_fonts()

    y = np.arange(len(data))
    h = 0.4
    fig_h = max(6.0, 0.32 * len(data) + 2.0)
    fig, ax = plt.subplots(figsize=(10.5, fig_h))
    ax.barh(y + h / 2, data[col].values, height=h, color=CONCENTRATION_COLORS[group], label=f"{group.title()} students")
    ax.barh(y - h / 2, data["white_per_pupil"].values, height=h, color=CONCENTRATION_COLORS["white"], label="White students")

    ax.set_yticks(y)
    ax.set_yticklabels(data["state"].tolist(), fontsize=10)
    ax.set_xlabel("Revenue per pupil (COLA-adjusted)")
    ax.xaxis.set_major_formatter(dollar_formatter())
    ax.margins(y=0.005)
    _clean_axes(ax)
    ax.legend(loc="lower right", framealpha=0.95)
    ax.set_title(title, fontweight="bold")
    return _save(fig, out_path, note)


def plot_revenue_by_source(out_path: Path, table: pd.DataFrame, concentration_column: str,
                           title: str, note: str = "") -> Optional[Path]:
    """Stacked federal/state/local revenue per pupil for each concentration category."""
    if table is None or table.empty:
        print(f"[SKIP] No source data for {out_path}")
        return None
    _boost_plot_fonts()

    cats = table[concentration_column].tolist()
    x = np.arange(len(cats))
    fig, ax = plt.subplots(figsize=(9.5, 6.8))

    bottom = np.zeros(len(cats))
    for label in SOURCE_COLUMNS:
        vals = table[label].fillna(0.0).values
        ax.bar(x, vals, bottom=bottom, color=SOURCE_COLORS[label], width=0.6,
               edgecolor="white", linewidth=0.5, label=label)
        bottom = bottom + vals

    for xi, total in zip(x, table["Total"].values):
        ax.annotate(f"${total:,.0f}", (xi, total), xytext=(0, 4), textcoords="offset points",
                    ha="center", fontsize=11)

    ax.set_xticks(x)
    ax.set_xticklabels(cats)
    ax.set_ylabel("Revenue per pupil (COLA-adjusted)")
    ax.yaxis.set_major_formatter(dollar_formatter())
    ax.set_ylim(0, compute_dollar_ylim([table], "Total", pad=1.12))
    _clean_axes(ax)

    # Legend top to bottom matches the stack
    handles, labels = ax.get_legend_handles_labels()
    ax.legend(handles[::-1], labels[::-1], loc="upper right", framealpha=0.95)
    ax.set_title(title, fontweight="bold")
    return _save(fig, out_path, note)


def plot_composition_scatter(out_path: Path, linked: pd.DataFrame, pct_column: str, title: str,
                             fit: Optional[Dict] = None, note: str = "") -> Optional[Path]:
    """
    District scatter of revenue per pupil vs a race percentage.

    Marker area scales with enrollment. When `fit` (from
    statistical_analysis.analyze_composition_vs_revenue) is given, the
    regression line is drawn.
    """
    if linked is None or linked.empty:
        print(f"[SKIP] No districts for {out_path}")
        return None
    _boost_plot_fonts()

    x = linked[pct_column].values
    y = linked["adjusted_total_cola_pp"].values
    sizes = np.clip(np.sqrt(linked["Total"].values.astype(float)) / 4.0, 2.0, 120.0)

    fig, ax = plt.subplots(figsize=(11.8, 7.4))
    ax.scatter(x, y, s=sizes, color=SCATTER_COLOR, alpha=0.5, edgecolors="none")

    if fit and "slope" in fit:
        xs = np.array([0.0, 100.0])
        ax.plot(xs, fit["intercept"] + fit["slope"] * xs, color="#1b1b1b", lw=2.2,
                label=f"Fit: ${fit['slope']:,.0f} per point (r = {fit['correlation']:.2f})")
        ax.legend(loc="upper right", framealpha=0.95)

    # y-axis stops at the 99.5th percentile
    if len(y):
        top = float(np.nanpercentile(y, 99.5))
        ax.set_ylim(0, top * 1.05 if top > 0 else None)
    ax.set_xlim(0, 100)
    ax.set_xlabel(f"% {pct_column.replace('pct_', '')} enrollment")
    ax.set_ylabel("Revenue per pupil (COLA-adjusted)")
    ax.yaxis.set_major_formatter(dollar_formatter())
    _clean_axes(ax)
    ax.set_title(title, fontweight="bold")
    return _save(fig, out_path, note)


def plot_all(reports: Dict[str, pd.DataFrame], linked: pd.DataFrame, out_dir: Path,
             stats_results: Optional[Dict] = None, note: str = "") -> Dict[str, Path]:
    """Render every chart; returns chart name -> PNG path (skipped charts are absent)."""
    out_dir = Path(out_dir)
    stats_results = stats_results or {}
    bin_ylim = compute_dollar_ylim(
        [reports["revenue_by_black_bin"], reports["revenue_by_nonwhite_bin"]], "revenue_per_pupil", pad=1.10)

    charts = {
        "revenue_by_black_bin": plot_revenue_by_bin(
            out_dir / "revenue_by_black_bin.png", reports["revenue_by_black_bin"], "black_bin",
            "Revenue per Pupil by Share of Black Students", "% black enrollment", bin_ylim, note),
        "revenue_by_nonwhite_bin": plot_revenue_by_bin(
            out_dir / "revenue_by_nonwhite_bin.png", reports["revenue_by_nonwhite_bin"], "nonwhite_bin",
            "Revenue per Pupil by Share of Nonwhite Students", "% nonwhite enrollment", bin_ylim, note),
        "black_vs_white_districts": plot_concentration_comparison(
            out_dir / "black_vs_white_districts.png", reports["black_vs_white_districts"],
            "concentration_by_black", "Majority-Black vs Majority-White Districts", note),
        "nonwhite_vs_white_districts": plot_concentration_comparison(
            out_dir / "nonwhite_vs_white_districts.png", reports["nonwhite_vs_white_districts"],
            "concentration_by_nonwhite", "Majority-Nonwhite vs Majority-White Districts", note),
        "state_black_vs_white": plot_state_comparison(
            out_dir / "state_black_vs_white.png", reports["state_comparison"], "black",
            "Revenue per Pupil by State: Black vs White Students", note),
        "state_nonwhite_vs_white": plot_state_comparison(
            out_dir / "state_nonwhite_vs_white.png", reports["state_comparison"], "nonwhite",
            "Revenue per Pupil by State: Nonwhite vs White Students", note),
        "revenue_by_source_black": plot_revenue_by_source(
            out_dir / "revenue_by_source_black.png", reports["revenue_by_source_black"],
            "concentration_by_black", "Revenue by Source: Black Concentration", note),
        "revenue_by_source_nonwhite": plot_revenue_by_source(
            out_dir / "revenue_by_source_nonwhite.png", reports["revenue_by_source_nonwhite"],
            "concentration_by_nonwhite", "Revenue by Source: Nonwhite Concentration", note),
        "scatter_nonwhite": plot_composition_scatter(
            out_dir / "scatter_nonwhite.png", linked, "pct_nonwhite",
            "District Revenue per Pupil vs % Nonwhite", stats_results.get("nonwhite_vs_revenue"), note),
    }
    return {k: v for k, v in charts.items() if v is not None}
