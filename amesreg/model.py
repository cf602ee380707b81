"""
Ordinary least squares fitting.

Predictor terms are raw columns or declared transforms of a column
(``Square(Gr Liv Area)``).  Transforms are materialised as design columns
before fitting; the solver only ever sees a numeric design matrix.

The solve uses a QR decomposition of the column-normalised design, so
rank deficiency is detected from the R diagonal instead of surfacing as
garbage coefficients.
"""

import logging
import re
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import linalg, stats

from .errors import ConfigurationError, SingularDesignError

logger = logging.getLogger(__name__)

INTERCEPT = 'Intercept'

# Relative tolerance on |R_jj| of the normalised design (R's lm default)
RANK_TOLERANCE = 1e-7


# ---------------------------------------------------------------------------
# Transformation helpers
# ---------------------------------------------------------------------------

TRANSFORM_TYPES = [
    'Linear', 'Logarithmic', 'Sqrt', 'Square', 'Cubic', 'Inverse',
]


def apply_transform(x, transform_type):
    """
    Apply one of the declared transformations to a numeric array.

    Every transformation is elementwise, so a term evaluates the same way
    on the fitting table and on any table it later predicts.

    Parameters
    ----------
    x : array-like
        Input values (1-D).  Missing cells (NaN) pass through unchanged.
    transform_type : str
        One of: 'Linear', 'Logarithmic', 'Sqrt', 'Square',
        'Cubic', 'Inverse'.

    Returns
    -------
    np.ndarray

    Raises
    ------
    ConfigurationError
        Unknown transform, or a transform undefined at an observed value
        (logarithm of x <= -1, inverse at x == -1, overflow).
    """
    x = np.asarray(x, dtype=np.float64).ravel()

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        if transform_type == 'Linear':
            result = x
        elif transform_type == 'Logarithmic':
            result = np.log(x + 1)
        elif transform_type == 'Sqrt':
            result = np.sqrt(np.abs(x))
        elif transform_type == 'Square':
            result = x ** 2
        elif transform_type == 'Cubic':
            result = x ** 3
        elif transform_type == 'Inverse':
            result = 1.0 / (x + 1)
        else:
            raise ConfigurationError(f"Unknown transform: {transform_type}")

    undefined = ~np.isfinite(result) & ~np.isnan(x)
    if undefined.any():
        raise ConfigurationError(
            f"{transform_type} transform is undefined for "
            f"{int(undefined.sum())} value(s), e.g. {x[undefined][0]!r}"
        )
    return result


_TERM_PATTERN = re.compile(r'^(\w+)\((.+)\)$')


@dataclass(frozen=True)
class Term:
    """A predictor term: a column, optionally under a declared transform."""

    column: str
    transform: str = 'Linear'

    def __post_init__(self):
        if self.transform not in TRANSFORM_TYPES:
            raise ConfigurationError(f"Unknown transform: {self.transform}")

    @property
    def name(self):
        if self.transform == 'Linear':
            return self.column
        return f"{self.transform}({self.column})"

    def evaluate(self, table):
        return apply_transform(table.values(self.column), self.transform)

    def __str__(self):
        return self.name


def parse_term(spec):
    """
    Build a :class:`Term` from a ``Term``, a column name, or a
    ``'Transform(column)'`` string.
    """
    if isinstance(spec, Term):
        return spec
    spec = str(spec)
    match = _TERM_PATTERN.match(spec)
    if match and match.group(1) in TRANSFORM_TYPES:
        return Term(match.group(2), match.group(1))
    return Term(spec)


def square(column):
    return Term(column, 'Square')


# ---------------------------------------------------------------------------
# Least squares core
# ---------------------------------------------------------------------------

def _least_squares(X, y, names):
    """
    Solve ``min ||y - X b||`` by QR on the column-normalised design.

    Returns
    -------
    beta : np.ndarray
    xtx_inv : np.ndarray
        ``(X'X)^-1`` in the original column scale.

    Raises
    ------
    SingularDesignError
        If any column is (numerically) a combination of earlier ones.
    """
    n, p = X.shape
    norms = np.sqrt(np.sum(X ** 2, axis=0))
    zero = norms == 0
    if zero.any():
        aliased = [nm for nm, z in zip(names, zero) if z]
        raise SingularDesignError(
            f"Design matrix is rank-deficient; all-zero term(s): {aliased}",
            aliased=aliased,
        )
    if n < p:
        raise SingularDesignError(
            f"Design matrix is rank-deficient: {p} parameters but only "
            f"{n} observations",
            aliased=names[n:],
        )

    Xs = X / norms
    Q, R = np.linalg.qr(Xs)
    diag = np.abs(np.diag(R))
    deficient = diag < RANK_TOLERANCE
    if deficient.any():
        aliased = [nm for nm, d in zip(names, deficient) if d]
        raise SingularDesignError(
            f"Design matrix is rank-deficient; aliased term(s): {aliased}",
            aliased=aliased,
        )

    beta_s = linalg.solve_triangular(R, Q.T @ y)
    R_inv = linalg.solve_triangular(R, np.eye(p))
    xtx_inv = (R_inv @ R_inv.T) / np.outer(norms, norms)
    return beta_s / norms, xtx_inv


def _readonly(arr):
    arr = np.array(arr, dtype=np.float64, copy=True)
    arr.setflags(write=False)
    return arr


# ---------------------------------------------------------------------------
# Fitted model
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Immutable result of :func:`fit_ols`.

    Arrays are read-only; refitting always produces a new object.
    ``param_names`` lists ``'Intercept'`` first when the model has one,
    then the term names in declaration order.
    """

    target: str
    terms: tuple
    intercept: bool
    param_names: tuple
    coefficients: np.ndarray
    std_errors: np.ndarray
    t_values: np.ndarray
    p_values: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    labels: tuple
    design: np.ndarray
    response: np.ndarray
    xtx_inv: np.ndarray
    r_squared: float
    adj_r_squared: float
    f_statistic: float
    f_pvalue: float
    sigma: float
    df_model: int
    df_resid: int

    # ---- sizes ----------------------------------------------------------

    @property
    def n_obs(self):
        return len(self.response)

    @property
    def n_params(self):
        return len(self.param_names)

    @property
    def term_names(self):
        return [t.name for t in self.terms]

    # ---- derived statistics ---------------------------------------------

    @property
    def rss(self):
        return float(np.sum(self.residuals ** 2))

    @property
    def log_likelihood(self):
        n = self.n_obs
        with np.errstate(divide='ignore'):
            return float(-0.5 * n * (np.log(2 * np.pi)
                                     + np.log(self.rss / n) + 1))

    @property
    def aic(self):
        """``n ln(RSS/n) + 2k`` with k counting the residual variance."""
        n = self.n_obs
        k = self.n_params + 1
        with np.errstate(divide='ignore'):
            return float(n * np.log(self.rss / n) + 2 * k)

    @property
    def params(self):
        return pd.Series(self.coefficients, index=list(self.param_names),
                         name='coef')

    def coef_table(self):
        """Coefficients, standard errors, t-statistics and p-values."""
        return pd.DataFrame({
            'coef': self.coefficients,
            'std_err': self.std_errors,
            't': self.t_values,
            'p_value': self.p_values,
        }, index=list(self.param_names))

    def conf_int(self, alpha=0.05):
        t_crit = stats.t.ppf(1.0 - alpha / 2.0, self.df_resid)
        half = t_crit * self.std_errors
        return pd.DataFrame({
            'lower': self.coefficients - half,
            'upper': self.coefficients + half,
        }, index=list(self.param_names))

    def predict(self, table):
        """Predict the target for every row of *table*."""
        X = _design_matrix(table, self.terms, self.intercept)
        if np.isnan(X).any():
            raise ConfigurationError(
                "Prediction table has missing cells in model terms"
            )
        return X @ self.coefficients

    def summary(self):
        """Return a printable coefficient and fit summary."""
        lines = []
        formula = ' + '.join(self.term_names) or '1'
        if not self.intercept:
            formula += ' - 1'
        lines.append(f"OLS: {self.target} ~ {formula}")
        lines.append("-" * 70)
        lines.append(f"  {'Term':28s}  {'Estimate':>12s}  {'Std.Err':>11s}  "
                     f"{'t':>8s}  {'P>|t|':>9s}")
        for name, b, se, t, p in zip(self.param_names, self.coefficients,
                                     self.std_errors, self.t_values,
                                     self.p_values):
            lines.append(f"  {name[:28]:28s}  {b:>12.5g}  {se:>11.4g}  "
                         f"{t:>8.3f}  {p:>9.3g}")
        lines.append("-" * 70)
        lines.append(f"  Residual std. error: {self.sigma:.5g} on "
                     f"{self.df_resid} degrees of freedom")
        lines.append(f"  R²: {self.r_squared:.4f}   "
                     f"Adjusted R²: {self.adj_r_squared:.4f}")
        lines.append(f"  F-statistic: {self.f_statistic:.4g} on "
                     f"{self.df_model} and {self.df_resid} DF, "
                     f"p-value: {self.f_pvalue:.3g}")
        lines.append(f"  n={self.n_obs}   AIC={self.aic:.2f}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------

def _design_matrix(table, terms, intercept):
    columns = [term.evaluate(table) for term in terms]
    if intercept:
        columns.insert(0, np.ones(table.n_rows))
    if not columns:
        return np.empty((table.n_rows, 0))
    return np.column_stack(columns)


def fit_ols(table, target, terms, intercept=True):
    """
    Fit ordinary least squares of *target* on *terms*.

    Parameters
    ----------
    table : Table
        Fully populated in the target and term columns.
    target : str
        Response column.
    terms : list of Term or str
        Predictor terms, in order.  Strings are parsed with
        :func:`parse_term`.
    intercept : bool, default=True
        Include an implicit intercept.

    Returns
    -------
    FittedModel

    Raises
    ------
    ConfigurationError
        Unknown or non-numeric column, target used as a predictor,
        missing cells, duplicate terms, an empty table, or no residual
        degrees of freedom.
    SingularDesignError
        Rank-deficient design matrix.
    """
    terms = tuple(parse_term(t) for t in terms)
    table.require(target, numeric=True)
    table.require(*[t.column for t in terms], numeric=True)

    if any(t.column == target for t in terms):
        raise ConfigurationError(
            f"Target '{target}' cannot be used as its own predictor"
        )
    names = [t.name for t in terms]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate terms: {names}")
    if not terms and not intercept:
        raise ConfigurationError("Model needs at least one parameter")

    y = table.values(target)
    X = _design_matrix(table, terms, intercept)
    incomplete = np.isnan(y).any() or np.isnan(X).any()
    if incomplete:
        raise ConfigurationError(
            f"Missing cells in '{target}' or its predictors; impute first"
        )

    param_names = ([INTERCEPT] if intercept else []) + names
    n, p = X.shape
    if n == 0:
        raise ConfigurationError("No observations to fit")
    df_resid = n - p
    if df_resid < 1:
        raise ConfigurationError(
            f"{n} observations leave no residual degrees of freedom "
            f"for {p} parameters"
        )

    beta, xtx_inv = _least_squares(X, y, param_names)
    df_model = p - 1 if intercept else p

    fitted = X @ beta
    resid = y - fitted
    rss = float(resid @ resid)
    sigma2 = rss / df_resid

    with np.errstate(divide='ignore', invalid='ignore'):
        se = np.sqrt(sigma2 * np.diag(xtx_inv))
        t_vals = beta / se
        p_vals = 2.0 * stats.t.sf(np.abs(t_vals), df_resid)

        if intercept:
            tss = float(np.sum((y - y.mean()) ** 2))
            adj_factor = (n - 1) / df_resid
        else:
            tss = float(y @ y)
            adj_factor = n / df_resid
        r2 = 1.0 - rss / tss if tss > 0 else np.nan
        adj_r2 = 1.0 - (1.0 - r2) * adj_factor

        if df_model > 0 and tss > 0:
            f_stat = ((tss - rss) / df_model) / sigma2
            f_pvalue = float(stats.f.sf(f_stat, df_model, df_resid))
        else:
            f_stat, f_pvalue = np.nan, np.nan

    model = FittedModel(
        target=target,
        terms=terms,
        intercept=intercept,
        param_names=tuple(param_names),
        coefficients=_readonly(beta),
        std_errors=_readonly(se),
        t_values=_readonly(t_vals),
        p_values=_readonly(p_vals),
        residuals=_readonly(resid),
        fitted_values=_readonly(fitted),
        labels=tuple(table.index),
        design=_readonly(X),
        response=_readonly(y),
        xtx_inv=_readonly(xtx_inv),
        r_squared=float(r2),
        adj_r_squared=float(adj_r2),
        f_statistic=float(f_stat),
        f_pvalue=f_pvalue,
        sigma=float(np.sqrt(sigma2)),
        df_model=df_model,
        df_resid=df_resid,
    )
    logger.debug("Fitted %s ~ %s: n=%d, R2=%.4f", target, names, n, r2)
    return model
