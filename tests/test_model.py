"""
Tests for the OLS fitter.

Run with:  python -m pytest tests/ -v
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm

from amesreg import (ConfigurationError, SingularDesignError, Table, Term,
                     apply_transform, fit_ols, parse_term, square)


def _random_table(n=200, seed=42):
    rng = np.random.RandomState(seed)
    X = pd.DataFrame(rng.randn(n, 3), columns=['A', 'B', 'C'])
    y = 5 + 3 * X['A'] - 2 * X['B'] + 0.5 * X['C'] + rng.randn(n) * 0.5
    return Table(X.assign(y=y)), X, y


def test_perfect_line_recovered():
    """y = 3 + 2x with no noise: intercept 3, slope 2, R² 1."""
    x = np.linspace(-5, 5, 40)
    table = Table(pd.DataFrame({'x': x, 'y': 3 + 2 * x}))
    model = fit_ols(table, 'y', ['x'])

    assert model.params['Intercept'] == pytest.approx(3.0, abs=1e-10)
    assert model.params['x'] == pytest.approx(2.0, abs=1e-10)
    assert model.r_squared == pytest.approx(1.0, abs=1e-12)
    assert np.allclose(model.residuals, 0.0, atol=1e-10)
    print(f"  PASS: Perfect line (b0={model.params['Intercept']:.6f}, "
          f"b1={model.params['x']:.6f})")


def test_matches_statsmodels():
    """Coefficients, inference and fit statistics agree with sm.OLS."""
    table, X, y = _random_table()
    model = fit_ols(table, 'y', ['A', 'B', 'C'])
    ref = sm.OLS(y, sm.add_constant(X)).fit()

    assert np.allclose(model.coefficients, ref.params.values)
    assert np.allclose(model.std_errors, ref.bse.values)
    assert np.allclose(model.t_values, ref.tvalues.values)
    assert np.allclose(model.p_values, ref.pvalues.values, atol=1e-12)
    assert model.r_squared == pytest.approx(ref.rsquared)
    assert model.adj_r_squared == pytest.approx(ref.rsquared_adj)
    assert model.f_statistic == pytest.approx(ref.fvalue)
    assert model.f_pvalue == pytest.approx(ref.f_pvalue, rel=1e-8)
    assert model.df_resid == ref.df_resid
    assert model.df_model == ref.df_model
    assert model.sigma == pytest.approx(np.sqrt(ref.scale))
    assert model.log_likelihood == pytest.approx(ref.llf)
    assert np.allclose(model.conf_int().values, ref.conf_int().values)
    print(f"  PASS: Matches statsmodels (R²={model.r_squared:.6f})")


def test_no_intercept_matches_statsmodels():
    table, X, y = _random_table()
    model = fit_ols(table, 'y', ['A', 'B'], intercept=False)
    ref = sm.OLS(y, X[['A', 'B']]).fit()

    assert model.param_names == ('A', 'B')
    assert np.allclose(model.coefficients, ref.params.values)
    assert model.r_squared == pytest.approx(ref.rsquared)
    assert model.adj_r_squared == pytest.approx(ref.rsquared_adj)


def test_duplicate_predictor_is_singular():
    """An exact copy of a predictor makes the design rank-deficient."""
    table, X, y = _random_table()
    frame = table.to_frame()
    frame['A copy'] = frame['A']
    table = Table(frame)

    with pytest.raises(SingularDesignError) as info:
        fit_ols(table, 'y', ['A', 'B', 'A copy'])
    assert 'A copy' in info.value.aliased


def test_linear_combination_is_singular():
    table, X, y = _random_table()
    frame = table.to_frame()
    frame['D'] = 2 * frame['A'] - frame['C']

    with pytest.raises(SingularDesignError):
        fit_ols(Table(frame), 'y', ['A', 'C', 'D'])


def test_scaled_columns_are_not_singular():
    """Columns on very different scales are still full rank."""
    table, X, y = _random_table()
    frame = table.to_frame()
    frame['A'] *= 1e6
    frame['B'] *= 1e-6
    model = fit_ols(Table(frame), 'y', ['A', 'B', 'C'])

    assert model.params['A'] == pytest.approx(3e-6, rel=0.05)
    assert model.params['B'] == pytest.approx(-2e6, rel=0.05)


def test_transform_terms():
    rng = np.random.RandomState(7)
    x = rng.uniform(0, 4, size=150)
    table = Table(pd.DataFrame({'x': x,
                                'y': 1 + x - 0.5 * x ** 2
                                + rng.randn(150) * 0.1}))
    model = fit_ols(table, 'y', ['x', 'Square(x)'])

    assert model.term_names == ['x', 'Square(x)']
    assert model.params['Square(x)'] == pytest.approx(-0.5, abs=0.05)
    assert model.params['x'] == pytest.approx(1.0, abs=0.15)


def test_parse_term():
    assert parse_term('Gr Liv Area') == Term('Gr Liv Area')
    assert parse_term('Square(Gr Liv Area)') == square('Gr Liv Area')
    assert parse_term('Logarithmic(Lot Area)').transform == 'Logarithmic'
    # unknown transform names are column names
    assert parse_term('Foo(x)') == Term('Foo(x)')
    assert str(square('x')) == 'Square(x)'
    with pytest.raises(ConfigurationError):
        Term('x', 'Quartic')


def test_transformations_defined_values():
    """Transforms are finite wherever they are defined."""
    x = np.array([-0.5, 0, 0.5, 1, 5, 100], dtype=float)

    for tf in ['Linear', 'Logarithmic', 'Sqrt', 'Square', 'Cubic',
               'Inverse']:
        result = apply_transform(x, tf)
        assert np.all(np.isfinite(result)), (
            f"Transform '{tf}' produced non-finite values: {result}"
        )
    assert apply_transform(x, 'Square').tolist() == (x ** 2).tolist()


def test_transform_rejects_undefined_values():
    with pytest.raises(ConfigurationError, match="undefined"):
        apply_transform([-2.0, 0.0, 1.0], 'Logarithmic')
    with pytest.raises(ConfigurationError, match="undefined"):
        apply_transform([-1.0, 0.0, 1.0], 'Inverse')
    with pytest.raises(ConfigurationError):
        apply_transform([1.0], 'Exponential')


def test_transform_keeps_missing_cells():
    x = np.array([1.0, np.nan, 3.0])
    for tf in ['Linear', 'Square', 'Logarithmic']:
        result = apply_transform(x, tf)
        assert np.isnan(result[1])
        assert np.isfinite(result[[0, 2]]).all()


def test_missing_predictor_cells_are_not_fitted():
    """An un-imputed predictor fails instead of being read as zeros."""
    x = np.linspace(0, 1, 30)
    frame = pd.DataFrame({'x': x, 'y': 1 + 2 * x})
    frame.loc[[3, 7], 'x'] = np.nan
    table = Table(frame)

    for term in ['x', 'Square(x)']:
        with pytest.raises(ConfigurationError, match="impute first"):
            fit_ols(table, 'y', [term])

    model = fit_ols(table.drop_rows([3, 7]), 'y', ['x'])
    with pytest.raises(ConfigurationError, match="missing cells"):
        model.predict(table)


def test_undefined_transform_fails_fit():
    x = np.linspace(-1, 1, 30)
    table = Table(pd.DataFrame({'x': x, 'y': x + 1}))
    with pytest.raises(ConfigurationError, match="undefined"):
        fit_ols(table, 'y', ['Logarithmic(x)'])


def test_predict_on_subset_matches_fitted_values():
    """Each term transforms new rows exactly as it did at fit time."""
    rng = np.random.RandomState(3)
    x = rng.uniform(0, 5, size=100)
    table = Table(pd.DataFrame({'x': x,
                                'y': np.log1p(x) + rng.randn(100) * 0.1}))

    for tf in ['Logarithmic', 'Sqrt', 'Square', 'Cubic', 'Inverse']:
        model = fit_ols(table, 'y', [Term('x', tf)])
        part = table.drop_rows(range(50))
        assert np.allclose(model.predict(part), model.fitted_values[50:])


def test_too_few_observations_is_configuration_error():
    empty = Table(pd.DataFrame({'x': np.array([], dtype=float),
                                'y': np.array([], dtype=float)}))
    with pytest.raises(ConfigurationError, match="No observations"):
        fit_ols(empty, 'y', ['x'])

    frame = pd.DataFrame({'a': [1.0, 2.0], 'b': [0.5, 3.0],
                          'y': [1.0, 3.0]})
    with pytest.raises(ConfigurationError, match="degrees of freedom"):
        fit_ols(Table(frame), 'y', ['a', 'b'])


def test_bad_requests_raise_configuration_error():
    table, X, y = _random_table()
    frame = table.to_frame()
    frame['label'] = 'x'
    frame.loc[3, 'C'] = np.nan
    table = Table(frame)

    with pytest.raises(ConfigurationError, match="own predictor"):
        fit_ols(table, 'y', ['A', 'y'])
    with pytest.raises(ConfigurationError, match="Unknown"):
        fit_ols(table, 'y', ['Z'])
    with pytest.raises(ConfigurationError, match="not numeric"):
        fit_ols(table, 'y', ['label'])
    with pytest.raises(ConfigurationError, match="Missing cells"):
        fit_ols(table, 'y', ['C'])
    with pytest.raises(ConfigurationError, match="Duplicate"):
        fit_ols(table, 'y', ['A', 'A'])

    tiny = Table(pd.DataFrame({'x': [1.0, 2.0], 'y': [1.0, 3.0]}))
    with pytest.raises(ConfigurationError, match="degrees of freedom"):
        fit_ols(tiny, 'y', ['x'])


def test_model_is_immutable():
    table, X, y = _random_table()
    model = fit_ols(table, 'y', ['A'])

    with pytest.raises(dataclasses.FrozenInstanceError):
        model.r_squared = 0.0
    with pytest.raises(ValueError):
        model.residuals[0] = 0.0
    with pytest.raises(ValueError):
        model.coefficients[:] = 0.0


def test_predict_reproduces_fitted_values():
    table, X, y = _random_table()
    model = fit_ols(table, 'y', ['A', 'B'])

    assert np.allclose(model.predict(table), model.fitted_values)
    assert model.labels == tuple(range(200))
    assert 'Intercept' in model.summary()


def test_intercept_only_model():
    table, X, y = _random_table()
    model = fit_ols(table, 'y', [])

    assert model.params['Intercept'] == pytest.approx(y.mean())
    assert model.r_squared == pytest.approx(0.0, abs=1e-12)
    assert np.isnan(model.f_statistic)

