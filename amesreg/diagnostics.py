"""
Regression diagnostics for a fitted OLS model.

Influence measures (leverage, studentized residuals, Cook's distance),
variance-inflation factors, and an advisory assumption check combining
residual normality, a link/linearity test and Breusch-Pagan
heteroscedasticity.  Nothing here raises on bad residuals: failed or
uncomputable checks come back as flags and NaN statistics.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.linear_model import LinearRegression
from statsmodels.stats.diagnostic import het_breuschpagan

from .errors import ConfigurationError, SingularDesignError
from .model import _least_squares, _readonly

logger = logging.getLogger(__name__)

INFLUENCE_RULES = ('cooks_4n', 'top_k')


@dataclass(frozen=True)
class AssumptionTest:
    """One component of the assumption check."""

    name: str
    statistic: float
    p_value: float
    df: float
    satisfied: bool
    note: str = ''

    @property
    def decision(self):
        return 'satisfied' if self.satisfied else 'not satisfied'


def _test(name, statistic, p_value, df, alpha, note=''):
    # An uncomputable test (NaN p-value) is reported but does not fail
    satisfied = not (np.isfinite(p_value) and p_value < alpha)
    return AssumptionTest(name, float(statistic), float(p_value),
                          float(df), bool(satisfied), note)


def _skipped(name, note):
    return AssumptionTest(name, np.nan, np.nan, np.nan, True, note)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class DiagnosticReport:
    """
    Diagnostics computed from a :class:`~amesreg.model.FittedModel`.

    Per-observation arrays are read-only and follow ``model.labels`` order.
    """

    model: object
    leverage: np.ndarray
    standardized_residuals: np.ndarray
    studentized_residuals: np.ndarray
    cooks_distance: np.ndarray
    vif: pd.Series
    tests: tuple
    global_test: AssumptionTest
    alpha: float

    @property
    def leverage_threshold(self):
        return 2.0 * self.model.n_params / self.model.n_obs

    @property
    def high_leverage(self):
        """Labels of observations with leverage above ``2p/n``."""
        mask = self.leverage > self.leverage_threshold
        return [lab for lab, m in zip(self.model.labels, mask) if m]

    @property
    def multicollinearity(self):
        """Terms with ``sqrt(VIF) > 2``."""
        with np.errstate(invalid='ignore'):
            flagged = np.sqrt(self.vif) > 2.0
        return self.vif.index[flagged.to_numpy()].tolist()

    @property
    def assumptions_satisfied(self):
        return all(t.satisfied for t in self.tests)

    @property
    def decision(self):
        return 'satisfied' if self.assumptions_satisfied else 'not satisfied'

    def test(self, name):
        for t in self.tests:
            if t.name == name:
                return t
        raise KeyError(name)

    def to_frame(self):
        """Per-observation influence measures indexed by row label."""
        return pd.DataFrame({
            'fitted': self.model.fitted_values,
            'residual': self.model.residuals,
            'leverage': self.leverage,
            'standardized_resid': self.standardized_residuals,
            'studentized_resid': self.studentized_residuals,
            'cooks_d': self.cooks_distance,
        }, index=pd.Index(self.model.labels, name='row'))

    def summary(self):
        lines = []
        lines.append(f"  {'Test':22s}  {'Statistic':>10s}  {'df':>5s}  "
                     f"{'p-value':>9s}  Decision")
        for t in self.tests + (self.global_test,):
            lines.append(f"  {t.name:22s}  {t.statistic:>10.4g}  "
                         f"{t.df:>5.0f}  {t.p_value:>9.3g}  {t.decision}")
        lines.append(f"  Overall: {self.decision} (alpha={self.alpha})")
        if len(self.vif):
            lines.append("")
            lines.append(f"  {'Term':28s}  {'VIF':>8s}  {'sqrt(VIF)':>9s}")
            for name, v in self.vif.items():
                flag = '  <- multicollinearity' if np.sqrt(v) > 2 else ''
                lines.append(f"  {name[:28]:28s}  {v:>8.3f}  "
                             f"{np.sqrt(v):>9.3f}{flag}")
        top = np.argsort(-np.nan_to_num(self.cooks_distance, nan=-np.inf))[:5]
        lines.append("")
        lines.append(f"  Largest Cook's distance (4/n = "
                     f"{4.0 / self.model.n_obs:.4g}; "
                     f"2p/n leverage = {self.leverage_threshold:.4g}):")
        for i in top:
            lines.append(f"    row {self.model.labels[i]!s:>8s}  "
                         f"D={self.cooks_distance[i]:.4g}  "
                         f"h={self.leverage[i]:.4g}  "
                         f"t={self.studentized_residuals[i]:.3f}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Influence
# ---------------------------------------------------------------------------

def _influence(model):
    X = model.design
    n, p = X.shape
    h = np.einsum('ij,jk,ik->i', X, model.xtx_inv, X)
    h = np.clip(h, 0.0, 1.0)
    e = model.residuals
    s = model.sigma
    df = model.df_resid

    with np.errstate(divide='ignore', invalid='ignore'):
        r = e / (s * np.sqrt(1.0 - h))
        # leave-one-out residual variance; needs df - 1 > 0
        if df > 1:
            t = r * np.sqrt((df - 1) / (df - r ** 2))
        else:
            t = np.full(n, np.nan)
        cooks = (r ** 2 / p) * (h / (1.0 - h))
    return h, r, t, cooks


def variance_inflation(model):
    """
    Variance-inflation factor per non-intercept term.

    Each term's design column is regressed (with intercept) on the other
    terms' columns; ``VIF = 1 / (1 - R^2)``.
    """
    offset = 1 if model.intercept else 0
    names = list(model.param_names[offset:])
    Z = model.design[:, offset:]
    vifs = []
    for j, name in enumerate(names):
        if len(names) == 1:
            vifs.append(1.0)
            continue
        others = np.delete(Z, j, axis=1)
        zj = Z[:, j]
        if np.ptp(zj) == 0:
            vifs.append(np.nan)
            continue
        r2 = LinearRegression().fit(others, zj).score(others, zj)
        vifs.append(1.0 / (1.0 - r2) if r2 < 1.0 else np.inf)
    return pd.Series(vifs, index=names, name='VIF', dtype=float)


# ---------------------------------------------------------------------------
# Assumption tests
# ---------------------------------------------------------------------------

def _normality(resid, alpha):
    if len(resid) < 8:
        return _skipped('normality', 'needs at least 8 residuals')
    k2, p = stats.normaltest(resid)
    return _test('normality', k2, p, 2, alpha,
                 "D'Agostino-Pearson skewness + kurtosis")


def _link(model, alpha):
    """RESET-style check: does the squared fitted value add anything?"""
    yhat = model.fitted_values
    if np.ptp(yhat) == 0 or model.df_resid < 2:
        return _skipped('link function', 'constant fitted values')

    scaled = (yhat - yhat.mean()) / yhat.std()
    X_aug = np.column_stack([model.design, scaled ** 2])
    names = list(model.param_names) + ['fitted^2']
    try:
        beta, _ = _least_squares(X_aug, model.response, names)
    except SingularDesignError:
        return _skipped('link function', 'squared fit aliased with design')

    resid = model.response - X_aug @ beta
    rss1 = float(resid @ resid)
    df2 = model.df_resid - 1
    with np.errstate(divide='ignore', invalid='ignore'):
        f = (model.rss - rss1) / (rss1 / df2)
    f = max(f, 0.0)
    return _test('link function', f, stats.f.sf(f, 1, df2), 1, alpha,
                 'RESET F-test on squared fitted values')


def _heteroscedasticity(model, alpha):
    X = model.design
    if not model.intercept:
        X = np.column_stack([np.ones(model.n_obs), X])
    if X.shape[1] < 2:
        return _skipped('heteroscedasticity', 'no regressors')
    lm, lm_p, _, _ = het_breuschpagan(model.residuals, X)
    return _test('heteroscedasticity', lm, lm_p, X.shape[1] - 1, alpha,
                 'Breusch-Pagan LM')


def assumption_tests(model, alpha=0.05):
    """
    Run the advisory assumption checks.

    Returns
    -------
    tests : tuple of AssumptionTest
        Normality, link function, heteroscedasticity.
    global_test : AssumptionTest
        Sum of the component statistics against chi-square with summed
        degrees of freedom.
    """
    resid = model.residuals
    scale = max(1.0, float(np.max(np.abs(model.response))))
    if np.allclose(resid, 0.0, atol=1e-12 * scale):
        note = 'residuals are identically zero'
        tests = (_skipped('normality', note), _skipped('link function', note),
                 _skipped('heteroscedasticity', note))
        return tests, _skipped('global', note)

    tests = (
        _normality(resid, alpha),
        _link(model, alpha),
        _heteroscedasticity(model, alpha),
    )

    usable = [t for t in tests if np.isfinite(t.statistic)]
    if not usable:
        return tests, _skipped('global', 'no component test computable')
    stat = sum(t.statistic for t in usable)
    df = sum(t.df for t in usable)
    return tests, _test('global', stat, stats.chi2.sf(stat, df), df, alpha,
                        'sum of component statistics')


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def diagnose(model, alpha=0.05):
    """
    Compute the full diagnostic report for *model*.

    The model carries its own design matrix and response, so no table is
    needed; the model is never modified.
    """
    if not 0 < alpha < 1:
        raise ConfigurationError(f"alpha must lie in (0, 1), got {alpha}")

    h, r, t, cooks = _influence(model)
    tests, global_test = assumption_tests(model, alpha)
    vif = variance_inflation(model)

    report = DiagnosticReport(
        model=model,
        leverage=_readonly(h),
        standardized_residuals=_readonly(r),
        studentized_residuals=_readonly(t),
        cooks_distance=_readonly(cooks),
        vif=vif,
        tests=tests,
        global_test=global_test,
        alpha=alpha,
    )
    if report.multicollinearity:
        logger.info("Possible multicollinearity (sqrt(VIF) > 2): %s",
                    report.multicollinearity)
    return report


def influential_observations(report, rule='cooks_4n', k=2):
    """
    Select influential observations by an explicit policy.

    Parameters
    ----------
    report : DiagnosticReport
    rule : {'cooks_4n', 'top_k'}
        'cooks_4n' keeps observations with Cook's distance above ``4/n``;
        'top_k' keeps the *k* largest Cook's distances.
    k : int
        Used by 'top_k' only.

    Returns
    -------
    list
        Row labels, largest Cook's distance first.
    """
    if rule not in INFLUENCE_RULES:
        raise ConfigurationError(
            f"Unknown influence rule '{rule}'; expected one of "
            f"{INFLUENCE_RULES}"
        )
    d = np.nan_to_num(report.cooks_distance, nan=-np.inf)
    order = np.argsort(-d, kind='stable')
    labels = report.model.labels

    if rule == 'top_k':
        if k < 0:
            raise ConfigurationError(f"k must be non-negative, got {k}")
        chosen = order[:k]
    else:
        threshold = 4.0 / report.model.n_obs
        chosen = [i for i in order if d[i] > threshold]
    return [labels[i] for i in chosen]

