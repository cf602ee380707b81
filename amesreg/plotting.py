"""
Diagnostic figures.  Each function returns the matplotlib figure; saving
or showing it is left to the caller.
"""

import numpy as np
import matplotlib.pyplot as plt
from scipy import stats


def plot_diagnostics(report, figsize=(12, 10)):
    """
    Four-panel residual diagnostics:
      Residuals vs fitted, normal Q-Q, scale-location, and
      standardized residuals vs leverage with Cook's distance contours.
    """
    model = report.model
    fitted = model.fitted_values
    resid = model.residuals
    std_resid = report.standardized_residuals
    h = report.leverage

    fig, axes = plt.subplots(2, 2, figsize=figsize)
    ax1, ax2, ax3, ax4 = axes.flatten()

    ax1.scatter(fitted, resid, alpha=0.3, s=8, color='steelblue')
    ax1.axhline(0, color='r', ls='--', lw=1)
    ax1.set_xlabel("Fitted values")
    ax1.set_ylabel("Residuals")
    ax1.set_title("Residuals vs Fitted")

    (osm, osr), (slope, intercept, _) = stats.probplot(
        np.nan_to_num(std_resid), dist='norm')
    ax2.scatter(osm, osr, alpha=0.3, s=8, color='steelblue')
    ax2.plot(osm, slope * osm + intercept, 'r--', lw=1)
    ax2.set_xlabel("Theoretical quantiles")
    ax2.set_ylabel("Standardized residuals")
    ax2.set_title("Normal Q-Q")

    ax3.scatter(fitted, np.sqrt(np.abs(std_resid)), alpha=0.3, s=8,
                color='steelblue')
    ax3.set_xlabel("Fitted values")
    ax3.set_ylabel("√|Standardized residuals|")
    ax3.set_title("Scale-Location")

    ax4.scatter(h, std_resid, alpha=0.3, s=8, color='steelblue')
    p = model.n_params
    hh = np.linspace(max(h.min(), 1e-3), min(h.max(), 0.999), 100)
    for level in (0.5, 1.0):
        bound = np.sqrt(level * p * (1 - hh) / hh)
        ax4.plot(hh, bound, 'r--', lw=0.8)
        ax4.plot(hh, -bound, 'r--', lw=0.8)
    ax4.set_xlabel("Leverage")
    ax4.set_ylabel("Standardized residuals")
    ax4.set_title("Residuals vs Leverage")
    lim = np.nanmax(np.abs(std_resid)) * 1.1
    if np.isfinite(lim) and lim > 0:
        ax4.set_ylim(-lim, lim)

    for ax in axes.flatten():
        ax.grid(True, alpha=0.3)

    formula = ' + '.join(model.term_names) or '1'
    fig.suptitle(f"{model.target} ~ {formula}", fontsize=12, y=1.01)
    fig.tight_layout()
    return fig


def plot_influence(report, n_label=3, figsize=(8, 6)):
    """
    Studentized residuals against leverage, bubble area proportional to
    Cook's distance; the *n_label* most influential rows are labelled.
    """
    model = report.model
    h = report.leverage
    t = report.studentized_residuals
    d = np.nan_to_num(report.cooks_distance)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    size = 20 + 2000 * d / d.max() if d.max() > 0 else 20
    ax.scatter(h, t, s=size, alpha=0.35, color='steelblue',
               edgecolor='k', linewidth=0.3)
    ax.axvline(report.leverage_threshold, color='r', ls='--', lw=1,
               label='2p/n')
    for level in (-2, 2):
        ax.axhline(level, color='grey', ls=':', lw=1)

    for i in np.argsort(-d)[:n_label]:
        ax.annotate(str(model.labels[i]), (h[i], t[i]), fontsize=9,
                    xytext=(4, 4), textcoords='offset points')

    ax.set_xlabel("Leverage (hat value)")
    ax.set_ylabel("Studentized residual")
    ax.set_title("Influence plot (area ∝ Cook's distance)")
    ax.legend(fontsize=9, loc='best')
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def plot_correlations(ranked, target, figsize=(8, 5)):
    """Horizontal bar chart of ``(column, r)`` pairs from the ranker."""
    names = [name for name, _ in ranked][::-1]
    values = [r for _, r in ranked][::-1]

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    colors = ['#38bdf8' if v >= 0 else '#f87171' for v in values]
    ax.barh(names, values, color=colors)
    ax.axvline(0, color='k', lw=0.8)
    ax.set_xlim(-1, 1)
    ax.set_xlabel(f"Pearson correlation with {target}")
    ax.set_title(f"Correlation with {target}")
    ax.grid(True, axis='x', alpha=0.3)
    fig.tight_layout()
    return fig
