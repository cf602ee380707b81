"""
Typed in-memory table plus the load / select / profile / impute steps.

A ``Table`` wraps a pandas DataFrame whose schema (column names and a
numeric-or-text type per column) is validated once, at construction.
Every operation returns a new ``Table``; the wrapped frame is never
handed out without copying.
"""

import logging
import os

import numpy as np
import pandas as pd

from .errors import ConfigurationError, ImputationError

logger = logging.getLogger(__name__)

NUMERIC = 'numeric'
TEXT = 'text'


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

def _infer_type(series):
    if pd.api.types.is_bool_dtype(series) or pd.api.types.is_numeric_dtype(series):
        return NUMERIC
    return TEXT


class Table:
    """
    Immutable rows x named-columns table.

    Parameters
    ----------
    frame : pd.DataFrame
        Source data.  Copied; the caller's frame is never referenced.
        The index is kept as the observation identifier, so rows can be
        reported by their original label after other rows are dropped.
    """

    def __init__(self, frame):
        if not isinstance(frame, pd.DataFrame):
            frame = pd.DataFrame(frame)
        frame = frame.copy()
        frame.columns = pd.Index([str(c) for c in frame.columns])
        if not frame.columns.is_unique:
            dupes = frame.columns[frame.columns.duplicated()].tolist()
            raise ConfigurationError(f"Duplicate column names: {dupes}")
        self._frame = frame
        self._types = {c: _infer_type(frame[c]) for c in frame.columns}

    # ---- shape / schema --------------------------------------------------

    @property
    def n_rows(self):
        return len(self._frame)

    @property
    def columns(self):
        return list(self._frame.columns)

    @property
    def index(self):
        return self._frame.index.copy()

    @property
    def column_types(self):
        return dict(self._types)

    @property
    def numeric_columns(self):
        return [c for c in self._frame.columns if self._types[c] == NUMERIC]

    def __len__(self):
        return self.n_rows

    def __contains__(self, name):
        return name in self._types

    def __repr__(self):
        return (f"Table(n_rows={self.n_rows}, "
                f"n_columns={len(self._types)}, "
                f"numeric={len(self.numeric_columns)})")

    def require(self, *names, numeric=False):
        """
        Validated column lookup.

        Raises
        ------
        ConfigurationError
            If any name is unknown, or (with ``numeric=True``) names a
            text column.
        """
        unknown = [n for n in names if n not in self._types]
        if unknown:
            raise ConfigurationError(f"Unknown column(s): {unknown}")
        if numeric:
            text = [n for n in names if self._types[n] != NUMERIC]
            if text:
                raise ConfigurationError(
                    f"Column(s) are not numeric: {text}"
                )
        return list(names)

    def column_type(self, name):
        self.require(name)
        return self._types[name]

    # ---- data access -----------------------------------------------------

    def values(self, name):
        """Return a numeric column as a float64 array (a copy)."""
        self.require(name, numeric=True)
        return self._frame[name].to_numpy(dtype=np.float64, na_value=np.nan,
                                         copy=True)

    def to_frame(self, columns=None):
        if columns is None:
            return self._frame.copy()
        return self._frame[self.require(*columns)].copy()

    def missing_mask(self):
        return self._frame.isna()

    def drop_rows(self, labels):
        """Return a new table without the observations in *labels*."""
        labels = list(labels)
        missing = [lab for lab in labels if lab not in self._frame.index]
        if missing:
            raise ConfigurationError(f"Unknown row label(s): {missing}")
        return Table(self._frame.drop(index=labels))


# ---------------------------------------------------------------------------
# Loader / selector / profiler / imputer
# ---------------------------------------------------------------------------

def load_table(path, sep=','):
    """
    Parse a delimited file whose first row is the header.

    Duplicate header names are rejected rather than silently mangled.

    Returns
    -------
    Table
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"No such data file: {path}")

    try:
        header = pd.read_csv(path, sep=sep, header=None, nrows=1,
                             dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        raise ConfigurationError(f"Empty data file: {path}") from None
    names = header.iloc[0].tolist() if len(header) else []
    if len(names) != len(set(names)):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigurationError(f"Duplicate column names in {path}: {dupes}")

    frame = pd.read_csv(path, sep=sep)
    if frame.empty:
        raise ConfigurationError(f"No rows in {path}")

    table = Table(frame)
    logger.info("Loaded %s: n=%d, columns=%d (%d numeric)",
                path, table.n_rows, len(table.columns),
                len(table.numeric_columns))
    return table


def select_numeric(table):
    """Return a new table holding only the numeric columns."""
    cols = table.numeric_columns
    dropped = [c for c in table.columns if c not in cols]
    if dropped:
        logger.debug("Dropped %d non-numeric column(s): %s",
                     len(dropped), dropped)
    return Table(table.to_frame(cols))


def profile_missingness(table, incomplete_only=True):
    """
    Fraction of present (non-missing) cells per column.

    Parameters
    ----------
    table : Table
    incomplete_only : bool, default=True
        Keep only columns with a completion rate below 1.

    Returns
    -------
    pd.Series
        Completion rate indexed by column name, lowest first.
    """
    if table.n_rows == 0:
        raise ConfigurationError("Cannot profile missingness of an empty table")

    rates = 1.0 - table.missing_mask().mean()
    rates = rates.astype(float).sort_values(kind='mergesort')
    rates.name = 'completion_rate'
    if incomplete_only:
        rates = rates[rates < 1.0]
    return rates


def impute_mean(table):
    """
    Replace missing numeric cells with that column's observed mean.

    Text columns are left as they are.  The input table is unchanged.

    Raises
    ------
    ImputationError
        If a numeric column has no observed values.
    """
    frame = table.to_frame()
    for col in table.numeric_columns:
        values = table.values(col)
        missing = np.isnan(values)
        if not missing.any():
            continue
        if missing.all():
            raise ImputationError(
                f"Column '{col}' has no observed values to impute from"
            )
        mean = values[~missing].mean()
        values[missing] = mean
        frame[col] = values
        logger.debug("Imputed %d cell(s) in '%s' with mean %.6g",
                     int(missing.sum()), col, mean)
    return Table(frame)
