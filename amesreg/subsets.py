"""
Exhaustive best-subset selection by adjusted R².

Every subset of the candidate pool is fitted, so cost grows as 2^k in the
pool size.  That is fine for the handful of candidates a report uses, but
beyond roughly 20 candidates the search is intractable; pools larger than
``max_candidates`` are rejected up front instead of left to run.
"""

import itertools
import logging
import math
from dataclasses import dataclass

import pandas as pd

from .errors import (ConfigurationError, SingularDesignError,
                     TooManyCandidatesError)
from .model import fit_ols, parse_term

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATES = 15


@dataclass(frozen=True, eq=False)
class SubsetResult:
    """
    Retained subsets, ordered by size ascending then adjusted R²
    descending.

    ``table`` columns: ``size``, ``terms`` (tuple of term names),
    ``adj_r2``, ``r2``, ``rss``.
    """

    target: str
    candidates: tuple
    nbest: int
    table: pd.DataFrame
    n_fitted: int
    n_singular: int

    @property
    def sizes(self):
        return sorted(self.table['size'].unique().tolist())

    def best(self, size):
        """Top row for a subset size."""
        rows = self.table[self.table['size'] == size]
        if rows.empty:
            raise KeyError(size)
        return rows.iloc[0]

    def overall_best(self):
        """Row with the highest adjusted R² across all sizes."""
        idx = self.table['adj_r2'].fillna(-math.inf).to_numpy().argmax()
        return self.table.iloc[idx]

    def summary(self):
        lines = [f"  {'Size':>4s}  {'Adj R²':>8s}  {'R²':>8s}  Terms"]
        for _, row in self.table.iterrows():
            lines.append(f"  {row['size']:>4d}  {row['adj_r2']:>8.4f}  "
                         f"{row['r2']:>8.4f}  {', '.join(row['terms'])}")
        return "\n".join(lines)


def best_subsets(table, target, candidates, nbest=1, max_size=None,
                 max_candidates=DEFAULT_MAX_CANDIDATES, intercept=True):
    """
    Fit every subset of *candidates* and keep the best per size.

    Parameters
    ----------
    table : Table
    target : str
    candidates : list of Term or str
        Candidate pool; enumeration follows this order.
    nbest : int, default=1
        Subsets retained per size.
    max_size : int or None
        Largest subset size (default: the whole pool).
    max_candidates : int, default=15
        Cap on the pool size.
    intercept : bool, default=True

    Returns
    -------
    SubsetResult

    Raises
    ------
    TooManyCandidatesError
        Pool larger than *max_candidates*.
    ConfigurationError
        Empty or duplicated pool, or a bad *nbest* / *max_size*.
    """
    pool = [parse_term(c) for c in candidates]
    if not pool:
        raise ConfigurationError("Best-subset search needs candidate terms")
    if len(pool) > max_candidates:
        raise TooManyCandidatesError(
            f"{len(pool)} candidates exceed the cap of {max_candidates} "
            f"(2^{len(pool)} fits)"
        )
    names = [t.name for t in pool]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate candidate terms: {names}")
    if nbest < 1:
        raise ConfigurationError(f"nbest must be at least 1, got {nbest}")
    if max_size is None:
        max_size = len(pool)
    if not 1 <= max_size <= len(pool):
        raise ConfigurationError(
            f"max_size must lie in [1, {len(pool)}], got {max_size}"
        )

    rows = []
    n_fitted = 0
    n_singular = 0
    for size in range(1, max_size + 1):
        fits = []
        for subset in itertools.combinations(pool, size):
            try:
                model = fit_ols(table, target, subset, intercept=intercept)
            except SingularDesignError as exc:
                n_singular += 1
                logger.debug("Skipped singular subset %s: %s",
                             [t.name for t in subset], exc)
                continue
            n_fitted += 1
            fits.append({
                'size': size,
                'terms': tuple(t.name for t in subset),
                'adj_r2': model.adj_r_squared,
                'r2': model.r_squared,
                'rss': model.rss,
            })
        # stable sort keeps enumeration order for ties
        fits.sort(key=lambda f: (math.isnan(f['adj_r2']), -f['adj_r2']))
        rows.extend(fits[:nbest])

    logger.info("Best-subset search: %d fits, %d singular subsets skipped",
                n_fitted, n_singular)
    result = pd.DataFrame(rows, columns=['size', 'terms', 'adj_r2', 'r2',
                                         'rss'])
    return SubsetResult(
        target=target,
        candidates=tuple(names),
        nbest=nbest,
        table=result.reset_index(drop=True),
        n_fitted=n_fitted,
        n_singular=n_singular,
    )
