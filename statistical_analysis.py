"""
Statistical Analysis Module for the Revenue Disparities Report

Examines the association between a district's racial composition and its
adjusted, cost-of-living-normalized revenue per pupil:
1. % nonwhite vs revenue per pupil (Pearson, Spearman, linear regression)
2. % black vs revenue per pupil (same tests)
3. Majority-nonwhite vs majority-white districts (Welch t-test)

These are district-level (unweighted) tests. The enrollment-weighted
figures in aggregate_reports are the headline numbers; these tests only say
whether the district-level pattern is distinguishable from noise.
"""

from typing import Dict

import numpy as np
import pandas as pd
import scipy.stats as stats

PER_PUPIL_COLUMN = "adjusted_total_cola_pp"


def analyze_composition_vs_revenue(linked: pd.DataFrame, pct_column: str = "pct_nonwhite") -> Dict:
    """
    Correlate a race percentage with revenue per pupil across districts.

    Returns:
        Dict with n, pearson r/p, spearman rho/p, slope ($ per percentage
        point), intercept, r_squared and interpretations, or {'error': ...}
    """
    clean_df = linked[[pct_column, PER_PUPIL_COLUMN]].dropna()

    if len(clean_df) < 3:
        return {'error': 'Insufficient data for regression analysis'}

    x = clean_df[pct_column].values
    y = clean_df[PER_PUPIL_COLUMN].values

    if np.all(x == x[0]) or np.all(y == y[0]):
        return {'error': 'No variation in data'}

    r, p_value = stats.pearsonr(x, y)
    rho, rho_p = stats.spearmanr(x, y)
    fit = stats.linregress(x, y)

    return {
        'test': 'Linear Regression',
        'x': pct_column,
        'n': len(clean_df),
        'correlation': float(r),
        'p_value': float(p_value),
        'spearman_rho': float(rho),
        'spearman_p_value': float(rho_p),
        'slope': float(fit.slope),
        'intercept': float(fit.intercept),
        'slope_stderr': float(fit.stderr),
        'r_squared': float(fit.rvalue ** 2),
        'interpretation': interpret_p_value(p_value),
        'effect_size_interpretation': interpret_correlation(r),
    }


def analyze_concentration_groups(linked: pd.DataFrame, concentration_column: str = "concentration_by_nonwhite",
                                 group: str = "nonwhite", baseline: str = "white") -> Dict:
    """
    Welch t-test of district revenue per pupil: `group` districts vs `baseline` districts.
    """
    a = linked.loc[linked[concentration_column] == group, PER_PUPIL_COLUMN].dropna().values
    b = linked.loc[linked[concentration_column] == baseline, PER_PUPIL_COLUMN].dropna().values

    if len(a) < 2 or len(b) < 2:
        return {'test': 'Welch t-test', 'error': 'Insufficient districts in one or both groups'}

    t_stat, p_value = stats.ttest_ind(a, b, equal_var=False)
    pooled_sd = np.sqrt((a.var(ddof=1) + b.var(ddof=1)) / 2.0)
    cohens_d = (a.mean() - b.mean()) / pooled_sd if pooled_sd > 0 else np.nan

    return {
        'test': 'Welch t-test',
        'groups': (group, baseline),
        'n': (len(a), len(b)),
        'means': (float(a.mean()), float(b.mean())),
        't_statistic': float(t_stat),
        'p_value': float(p_value),
        'cohens_d': float(cohens_d),
        'interpretation': interpret_p_value(p_value),
    }


def interpret_p_value(p: float) -> str:
    """Interpret p-value."""
    if p < 0.001:
        return "Very strong evidence of association (p < 0.001)"
    elif p < 0.01:
        return "Strong evidence of association (p < 0.01)"
    elif p < 0.05:
        return "Moderate evidence of association (p < 0.05)"
    elif p < 0.10:
        return "Weak evidence of association (p < 0.10)"
    else:
        return "Little to no evidence of association (p ≥ 0.10)"


def interpret_correlation(r: float) -> str:
    """Interpret Pearson correlation coefficient."""
    abs_r = abs(r)
    if abs_r < 0.1:
        return "Negligible correlation"
    elif abs_r < 0.3:
        return "Weak correlation"
    elif abs_r < 0.5:
        return "Moderate correlation"
    else:
        return "Strong correlation"


def run_all_analyses(linked: pd.DataFrame) -> Dict[str, Dict]:
    print("\n[Stats] Running association tests...")
    results = {
        'nonwhite_vs_revenue': analyze_composition_vs_revenue(linked, "pct_nonwhite"),
        'black_vs_revenue': analyze_composition_vs_revenue(linked, "pct_black"),
        'nonwhite_vs_white_districts': analyze_concentration_groups(
            linked, "concentration_by_nonwhite", "nonwhite", "white"),
        'black_vs_white_districts': analyze_concentration_groups(
            linked, "concentration_by_black", "black", "white"),
    }
    for name, res in results.items():
        if 'error' in res:
            print(f"  [SKIP] {name}: {res['error']}")
        else:
            print(f"  {name}: p = {res['p_value']:.4f} ({res['interpretation']})")
    return results


def format_results_for_report(results: Dict[str, Dict]) -> list:
    """Plain-text paragraphs, one per analysis, for the PDF methods appendix."""
    paragraphs = []
    for key in ('nonwhite_vs_revenue', 'black_vs_revenue'):
        res = results.get(key, {})
        label = "% nonwhite" if key.startswith("nonwhite") else "% black"
        if 'error' in res:
            paragraphs.append(f"{label} vs revenue per pupil: {res['error']}.")
            continue
        paragraphs.append(
            f"{label} vs revenue per pupil across {res['n']:,} districts: "
            f"r = {res['correlation']:.3f}, Spearman rho = {res['spearman_rho']:.3f}, "
            f"slope = ${res['slope']:,.0f} per percentage point (R² = {res['r_squared']:.3f}). "
            f"{res['effect_size_interpretation']}; {res['interpretation'].lower()}."
        )
    for key in ('nonwhite_vs_white_districts', 'black_vs_white_districts'):
        res = results.get(key, {})
        if 'error' in res:
            paragraphs.append(f"{key.replace('_', ' ')}: {res['error']}.")
            continue
        g, b = res['groups']
        ma, mb = res['means']
        na, nb = res['n']
        paragraphs.append(
            f"Majority-{g} districts (n = {na:,}) average ${ma:,.0f} per pupil vs "
            f"${mb:,.0f} in majority-{b} districts (n = {nb:,}); Welch t = {res['t_statistic']:.2f}, "
            f"Cohen's d = {res['cohens_d']:.2f}. {res['interpretation']}."
        )
    return paragraphs
