"""
amesreg: a reproducible OLS regression report for tabular housing data.

Loads a delimited table, profiles and mean-imputes missing values, ranks
correlations with the sale price, fits and diagnoses least-squares models,
searches best subsets, and compares fits by AIC.
"""

from .compare import AICComparison, aic, compare_aic
from .correlation import correlation_matrix, rank_correlations
from .diagnostics import (AssumptionTest, DiagnosticReport, assumption_tests,
                          diagnose, influential_observations,
                          variance_inflation)
from .errors import (AICComparabilityWarning, AmesRegError,
                     ConfigurationError, ImputationError, SingularDesignError,
                     TooManyCandidatesError)
from .model import (TRANSFORM_TYPES, FittedModel, Term, apply_transform,
                    fit_ols, parse_term, square)
from .report import ReportConfig, ReportResult, run_report
from .subsets import SubsetResult, best_subsets
from .table import (Table, impute_mean, load_table, profile_missingness,
                    select_numeric)

__version__ = "0.1.0"

__all__ = [
    "Table", "load_table", "select_numeric", "profile_missingness",
    "impute_mean",
    "correlation_matrix", "rank_correlations",
    "TRANSFORM_TYPES", "Term", "parse_term", "square", "apply_transform",
    "fit_ols", "FittedModel",
    "diagnose", "DiagnosticReport", "AssumptionTest", "assumption_tests",
    "variance_inflation", "influential_observations",
    "best_subsets", "SubsetResult",
    "aic", "compare_aic", "AICComparison",
    "ReportConfig", "ReportResult", "run_report",
    "AmesRegError", "ConfigurationError", "ImputationError",
    "SingularDesignError", "TooManyCandidatesError",
    "AICComparabilityWarning",
]
