"""
Pearson correlation matrix and target-correlation ranking.
"""

import numpy as np
import pandas as pd

from .errors import ConfigurationError

MAXIMUM = 'maximum'


def correlation_matrix(table):
    """
    Pairwise Pearson correlation over every numeric column.

    Columns with zero sample variance have no defined correlation; their
    whole row and column, diagonal included, is NaN.

    Parameters
    ----------
    table : Table
        Numeric columns must be fully populated (impute first).

    Returns
    -------
    pd.DataFrame
        Square, symmetric, indexed by column name on both axes.
    """
    cols = table.numeric_columns
    X = np.column_stack([table.values(c) for c in cols]) if cols else \
        np.empty((table.n_rows, 0))

    incomplete = [c for c, bad in zip(cols, np.isnan(X).any(axis=0)) if bad]
    if incomplete:
        raise ConfigurationError(
            f"Correlation requires fully populated columns; missing cells "
            f"in {incomplete}"
        )

    n = X.shape[0]
    if n < 2:
        zero_var = np.ones(len(cols), dtype=bool)
    else:
        zero_var = np.ptp(X, axis=0) == 0

    Xc = X - X.mean(axis=0)
    norms = np.sqrt(np.sum(Xc ** 2, axis=0))
    with np.errstate(divide='ignore', invalid='ignore'):
        corr = (Xc.T @ Xc) / np.outer(norms, norms)

    corr = np.clip(corr, -1.0, 1.0)
    corr = (corr + corr.T) / 2.0
    np.fill_diagonal(corr, 1.0)
    corr[zero_var, :] = np.nan
    corr[:, zero_var] = np.nan

    return pd.DataFrame(corr, index=cols, columns=cols)


def rank_correlations(corr, target, k=None, value=MAXIMUM, pool=None):
    """
    Order predictors by their correlation with *target*.

    Parameters
    ----------
    corr : pd.DataFrame
        Output of :func:`correlation_matrix`.
    target : str
        Column to rank against.  Never included in the output.
    k : int or None
        Keep the first *k* entries (all when None).
    value : 'maximum' or float in [-1, 1]
        'maximum' ranks by descending ``|r|``; a number ranks by
        ascending ``|r - value|``.
    pool : list of str or None
        Restrict the ranking to these columns.

    Returns
    -------
    list of (str, float)
        Stable order: exact ties keep column order, NaN sorts last.
    """
    if target not in corr.columns:
        raise ConfigurationError(f"Unknown target column: '{target}'")

    if pool is None:
        pool = [c for c in corr.columns if c != target]
    else:
        pool = list(pool)
        if target in pool:
            raise ConfigurationError(
                f"Cannot rank target '{target}' against itself"
            )
        unknown = [c for c in pool if c not in corr.columns]
        if unknown:
            raise ConfigurationError(f"Unknown column(s) in pool: {unknown}")
        if len(set(pool)) != len(pool):
            raise ConfigurationError(f"Duplicate column(s) in pool: {pool}")

    if k is not None and k < 1:
        raise ConfigurationError(f"k must be positive, got {k}")

    r = corr.loc[pool, target].astype(float)
    if isinstance(value, str):
        if value != MAXIMUM:
            raise ConfigurationError(
                f"value must be '{MAXIMUM}' or a number, got '{value}'"
            )
        key = -r.abs()
    else:
        value = float(value)
        if not -1.0 <= value <= 1.0:
            raise ConfigurationError(
                f"Target correlation must lie in [-1, 1], got {value}"
            )
        key = (r - value).abs()

    order = key.sort_values(kind='mergesort', na_position='last').index
    ranked = [(name, float(r[name])) for name in order]
    return ranked[:k] if k is not None else ranked
