"""
Tests for AIC comparison.
"""

import warnings

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm

from amesreg import AICComparabilityWarning, Table, aic, compare_aic, fit_ols


def _orthogonalize(v, basis):
    coef = np.linalg.lstsq(basis, v, rcond=None)[0]
    return v - basis @ coef


def _nested_table(n=100, seed=42):
    """
    y = 1 + x1 + 0.8 x2 + e, plus x3 that explains almost none of e.

    x3 = z + 0.01 e with z orthogonal to 1, x1, x2 and e, so adding x3
    lowers RSS by roughly 1e-4 of its value: strictly lower, but far
    below the AIC penalty of one parameter.
    """
    rng = np.random.RandomState(seed)
    ones = np.ones(n)
    x1 = rng.randn(n)
    x2 = _orthogonalize(rng.randn(n), np.column_stack([ones, x1]))
    basis = np.column_stack([ones, x1, x2])
    e = _orthogonalize(rng.randn(n), basis)
    z = _orthogonalize(rng.randn(n), np.column_stack([basis, e]))
    z *= np.linalg.norm(e) / np.linalg.norm(z)
    x3 = z + 0.01 * e
    y = 1 + x1 + 0.8 * x2 + e
    return Table(pd.DataFrame({'x1': x1, 'x2': x2, 'x3': x3, 'y': y}))


def test_aic_formula():
    table = _nested_table()
    model = fit_ols(table, 'y', ['x1', 'x2'])
    n = model.n_obs

    assert aic(model) == pytest.approx(
        n * np.log(model.rss / n) + 2 * (model.n_params + 1))

    frame = table.to_frame()
    ref = sm.OLS(frame['y'], sm.add_constant(frame[['x1', 'x2']])).fit()
    # statsmodels keeps the likelihood constant and omits the variance
    assert aic(model) - ref.aic == pytest.approx(2 - n * (np.log(2 * np.pi)
                                                          + 1))


def test_richer_model_preferred_when_fit_improves():
    table = _nested_table()
    small = fit_ols(table, 'y', ['x1'])
    rich = fit_ols(table, 'y', ['x1', 'x2'])

    assert rich.rss < small.rss
    result = compare_aic(small, rich, labels=('small', 'rich'))
    assert result.preferred == 'rich'
    assert result.comparable
    assert result.delta < 0
    print(f"  PASS: Rich model preferred (ΔAIC={result.delta:.2f})")


def test_penalty_outweighs_tiny_improvement():
    table = _nested_table()
    small = fit_ols(table, 'y', ['x1', 'x2'])
    rich = fit_ols(table, 'y', ['x1', 'x2', 'x3'])

    assert rich.rss < small.rss
    result = compare_aic(small, rich, labels=('small', 'rich'))
    assert result.preferred == 'small'
    assert result.n_params == (4, 5)
    print(f"  PASS: Penalty wins (ΔAIC={result.delta:.2f})")


def test_different_observation_counts_warn():
    table = _nested_table()
    full = fit_ols(table, 'y', ['x1', 'x2'])
    fewer = fit_ols(table.drop_rows([0, 1, 2]), 'y', ['x1', 'x2'])

    with pytest.warns(AICComparabilityWarning):
        result = compare_aic(full, fewer)
    assert not result.comparable
    assert result.n_obs == (100, 97)
    assert result.preferred in ('model_a', 'model_b')
    assert 'Caveat' in result.summary()


def test_same_counts_do_not_warn():
    table = _nested_table()
    model = fit_ols(table, 'y', ['x1'])

    with warnings.catch_warnings():
        warnings.simplefilter('error')
        result = compare_aic(model, model)
    assert result.preferred is None
    assert 'tie' in result.summary()
