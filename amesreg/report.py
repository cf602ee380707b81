"""
The housing-price regression report, end to end.

    load -> numeric columns -> missingness -> mean imputation
         -> correlation ranking -> initial OLS fit -> diagnostics
         -> drop influential rows + declared terms -> revised fit
         -> best subsets -> AIC comparison

Every run builds its own objects from the configuration; nothing is
shared between runs.
"""

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass, field

import matplotlib.pyplot as plt

from .compare import compare_aic
from .correlation import correlation_matrix, rank_correlations
from .diagnostics import INFLUENCE_RULES, diagnose, influential_observations
from .errors import AmesRegError, ConfigurationError
from .model import fit_ols, parse_term
from .plotting import plot_correlations, plot_diagnostics, plot_influence
from .subsets import DEFAULT_MAX_CANDIDATES, best_subsets
from .table import impute_mean, load_table, profile_missingness, select_numeric

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ReportConfig:
    """
    Analysis parameters for one report run.

    Parameters
    ----------
    data_path : str
        Delimited file; first row is the header.
    target : str, default='SalePrice'
        Response column.
    sep : str, default=','
        Field delimiter.
    predictors : list of str or None
        Initial model terms.  None uses the ``n_top`` strongest
        correlates of the target.
    n_top : int, default=3
        Length of the correlation ranking (and of the default
        predictor list).
    target_correlation : float or None
        Also report the predictors whose correlation is closest to this
        value.
    extra_terms : list of str
        Declared transform terms added to the revised model, e.g.
        ``'Square(Gr Liv Area)'``.
    nbest : int, default=1
        Subsets kept per size in the best-subset table.
    max_candidates : int, default=15
        Cap on the best-subset pool.
    alpha : float, default=0.05
        Significance level of the assumption tests.
    influence_rule : {'cooks_4n', 'top_k'}
        Policy for the observations dropped before the revised fit.
    influence_top_k : int, default=2
        Rows dropped under 'top_k'.
    plot_dir : str or None
        Write diagnostic figures here when set.
    """

    data_path: str
    target: str = 'SalePrice'
    sep: str = ','
    predictors: list = None
    n_top: int = 3
    target_correlation: float = None
    extra_terms: list = field(default_factory=list)
    nbest: int = 1
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    alpha: float = 0.05
    influence_rule: str = 'cooks_4n'
    influence_top_k: int = 2
    plot_dir: str = None

    def validate(self):
        if not self.target:
            raise ConfigurationError("A target column is required")
        if self.n_top < 1:
            raise ConfigurationError(f"n_top must be positive, got {self.n_top}")
        if self.target_correlation is not None and \
                not -1.0 <= self.target_correlation <= 1.0:
            raise ConfigurationError(
                f"target_correlation must lie in [-1, 1], got "
                f"{self.target_correlation}"
            )
        if self.nbest < 1:
            raise ConfigurationError(f"nbest must be positive, got {self.nbest}")
        if not 0 < self.alpha < 1:
            raise ConfigurationError(f"alpha must lie in (0, 1), got {self.alpha}")
        if self.influence_rule not in INFLUENCE_RULES:
            raise ConfigurationError(
                f"influence_rule must be one of {INFLUENCE_RULES}, got "
                f"'{self.influence_rule}'"
            )
        if self.influence_top_k < 0:
            raise ConfigurationError(
                f"influence_top_k must be non-negative, got "
                f"{self.influence_top_k}"
            )
        if self.predictors is not None and self.target in self.predictors:
            raise ConfigurationError(
                f"Target '{self.target}' listed as its own predictor"
            )
        return self


@dataclass(eq=False)
class ReportResult:
    """Everything a report run computed, for rendering or inspection."""

    config: ReportConfig
    table: object
    imputed: object
    missing_before: object
    missing_after: object
    correlations: object
    ranking: list
    closest: list
    initial: object
    initial_diagnostics: object
    dropped: list
    revised: object
    revised_diagnostics: object
    subsets: object
    comparison: object
    runtime: float = 0.0


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def _banner(title):
    print()
    print("=" * 70)
    print(title)
    print("=" * 70)


def _print_missing(rates, label):
    print(f"\n{label}:")
    if rates.empty:
        print("  (none)")
        return
    for col, rate in rates.items():
        print(f"  {col:30s}  {rate*100:6.2f}% complete")


def _print_ranking(ranking, title):
    print(f"\n{title}:")
    for i, (name, r) in enumerate(ranking, 1):
        print(f"  {i:2d}. {name:30s}  r={r:+.4f}")


def run_report(config, verbose=True):
    """
    Run the full report for *config*.

    Parameters
    ----------
    config : ReportConfig
    verbose : bool, default=True
        Print the report sections as they are computed.

    Returns
    -------
    ReportResult
    """
    t0 = time.time()
    config.validate()
    target = config.target

    # Data ---------------------------------------------------------------
    table = load_table(config.data_path, sep=config.sep)
    table.require(target, numeric=True)
    numeric = select_numeric(table)
    missing_before = profile_missingness(numeric)
    imputed = impute_mean(numeric)
    missing_after = profile_missingness(imputed)

    if verbose:
        _banner("HOUSING PRICE REGRESSION REPORT")
        print(f"  Dataset : {config.data_path}")
        print(f"  n={table.n_rows}, columns={len(table.columns)} "
              f"({len(numeric.columns)} numeric)")
        print(f"  Target  : {target}")
        _banner("MISSING DATA")
        _print_missing(missing_before, "Incomplete columns before imputation")
        _print_missing(missing_after, "Incomplete columns after imputation")

    # Correlations -------------------------------------------------------
    corr = correlation_matrix(imputed)
    ranking = rank_correlations(corr, target, k=config.n_top)
    closest = []
    if config.target_correlation is not None:
        closest = rank_correlations(corr, target, k=config.n_top,
                                    value=config.target_correlation)

    if verbose:
        _banner(f"CORRELATION WITH {target}")
        _print_ranking(ranking, "Strongest correlates")
        if closest:
            _print_ranking(closest, f"Closest to r={config.target_correlation}")

    # Initial model ------------------------------------------------------
    if config.predictors is not None:
        predictors = list(config.predictors)
    else:
        predictors = [name for name, _ in ranking]
    initial = fit_ols(imputed, target, predictors)
    initial_diag = diagnose(initial, alpha=config.alpha)

    if verbose:
        _banner("INITIAL MODEL")
        print(initial.summary())
        print("\nDiagnostics:")
        print(initial_diag.summary())

    # Revised model ------------------------------------------------------
    dropped = influential_observations(initial_diag,
                                       rule=config.influence_rule,
                                       k=config.influence_top_k)
    logger.info("Dropping %d influential observation(s) by rule '%s'",
                len(dropped), config.influence_rule)
    revised_table = imputed.drop_rows(dropped)
    revised_terms = [parse_term(p) for p in predictors] + \
        [parse_term(t) for t in config.extra_terms]
    revised = fit_ols(revised_table, target, revised_terms)
    revised_diag = diagnose(revised, alpha=config.alpha)

    if verbose:
        _banner("REVISED MODEL")
        print(f"  Influence rule : {config.influence_rule}")
        print(f"  Rows dropped   : {len(dropped)} "
              f"{dropped[:10]}{' ...' if len(dropped) > 10 else ''}")
        if config.extra_terms:
            print(f"  Added terms    : {list(config.extra_terms)}")
        print()
        print(revised.summary())
        print("\nDiagnostics:")
        print(revised_diag.summary())

    # Best subsets / comparison -----------------------------------------
    subsets = best_subsets(revised_table, target, revised_terms,
                           nbest=config.nbest,
                           max_candidates=config.max_candidates)
    comparison = compare_aic(initial, revised, labels=('initial', 'revised'))

    if verbose:
        _banner("BEST SUBSETS (adjusted R²)")
        print(subsets.summary())
        _banner("MODEL COMPARISON (AIC)")
        print(comparison.summary())

    result = ReportResult(
        config=config,
        table=table,
        imputed=imputed,
        missing_before=missing_before,
        missing_after=missing_after,
        correlations=corr,
        ranking=ranking,
        closest=closest,
        initial=initial,
        initial_diagnostics=initial_diag,
        dropped=dropped,
        revised=revised,
        revised_diagnostics=revised_diag,
        subsets=subsets,
        comparison=comparison,
    )

    if config.plot_dir:
        save_figures(result, config.plot_dir)

    result.runtime = time.time() - t0
    if verbose:
        print(f"\n  Runtime: {result.runtime:.2f}s")
        print("=" * 70)
    return result


def save_figures(result, plot_dir):
    """Write the report figures as PNG files into *plot_dir*."""
    os.makedirs(plot_dir, exist_ok=True)
    figures = {
        'correlations.png': plot_correlations(result.ranking,
                                              result.config.target),
        'initial_diagnostics.png': plot_diagnostics(result.initial_diagnostics),
        'initial_influence.png': plot_influence(result.initial_diagnostics),
        'revised_diagnostics.png': plot_diagnostics(result.revised_diagnostics),
    }
    paths = []
    for name, fig in figures.items():
        path = os.path.join(plot_dir, name)
        fig.savefig(path, dpi=120, bbox_inches='tight')
        plt.close(fig)
        paths.append(path)
        logger.info("Wrote %s", path)
    return paths


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def build_parser():
    parser = argparse.ArgumentParser(
        prog='amesreg-report',
        description='Regression report for a delimited housing dataset.',
    )
    parser.add_argument('data_path', help='CSV/delimited file with header')
    parser.add_argument('--target', default='SalePrice')
    parser.add_argument('--sep', default=',')
    parser.add_argument('--predictors', nargs='+', default=None,
                        help='initial model terms (default: top correlates)')
    parser.add_argument('--top', dest='n_top', type=int, default=3)
    parser.add_argument('--target-correlation', type=float, default=None)
    parser.add_argument('--extra-term', dest='extra_terms', action='append',
                        default=[],
                        help="transform term for the revised model, "
                             "e.g. 'Square(Gr Liv Area)'")
    parser.add_argument('--nbest', type=int, default=1)
    parser.add_argument('--max-candidates', type=int,
                        default=DEFAULT_MAX_CANDIDATES)
    parser.add_argument('--alpha', type=float, default=0.05)
    parser.add_argument('--influence-rule', choices=INFLUENCE_RULES,
                        default='cooks_4n')
    parser.add_argument('--influence-top-k', type=int, default=2)
    parser.add_argument('--plot-dir', default=None)
    parser.add_argument('--quiet', action='store_true',
                        help='do not print the report')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format=LOG_FORMAT)

    config = ReportConfig(
        data_path=args.data_path,
        target=args.target,
        sep=args.sep,
        predictors=args.predictors,
        n_top=args.n_top,
        target_correlation=args.target_correlation,
        extra_terms=args.extra_terms,
        nbest=args.nbest,
        max_candidates=args.max_candidates,
        alpha=args.alpha,
        influence_rule=args.influence_rule,
        influence_top_k=args.influence_top_k,
        plot_dir=args.plot_dir,
    )
    try:
        run_report(config, verbose=not args.quiet)
    except AmesRegError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0
