"""
AIC comparison of two fitted models.
"""

import logging
import warnings
from dataclasses import dataclass

from .errors import AICComparabilityWarning

logger = logging.getLogger(__name__)


def aic(model):
    """``n ln(RSS/n) + 2k``; k counts coefficients plus residual variance."""
    return model.aic


@dataclass(frozen=True)
class AICComparison:
    labels: tuple
    aic: tuple
    n_obs: tuple
    n_params: tuple
    preferred: object
    comparable: bool

    @property
    def delta(self):
        """AIC of the second model minus the first."""
        return self.aic[1] - self.aic[0]

    def summary(self):
        lines = [f"  {'Model':20s}  {'n':>6s}  {'k':>4s}  {'AIC':>12s}"]
        for lab, a, n, k in zip(self.labels, self.aic, self.n_obs,
                                self.n_params):
            lines.append(f"  {lab[:20]:20s}  {n:>6d}  {k:>4d}  {a:>12.3f}")
        if self.preferred is None:
            lines.append("  Lower AIC: tie")
        else:
            lines.append(f"  Lower AIC: {self.preferred} "
                         f"(ΔAIC={abs(self.delta):.3f})")
        if not self.comparable:
            lines.append("  Caveat: models were fitted on different "
                         "observation counts; AIC is not strictly comparable")
        return "\n".join(lines)


def compare_aic(model_a, model_b, labels=('model_a', 'model_b')):
    """
    Compare two fitted models by AIC.

    The models need not share observations or terms.  Fitting on
    different observation counts issues an
    :class:`~amesreg.errors.AICComparabilityWarning` and marks the result
    not comparable, but the comparison is still returned.

    Returns
    -------
    AICComparison
        ``preferred`` is the label with the lower AIC, None on a tie.
    """
    labels = tuple(labels)
    aics = (aic(model_a), aic(model_b))
    comparable = model_a.n_obs == model_b.n_obs
    if not comparable:
        warnings.warn(
            f"AIC compared across different observation counts "
            f"({labels[0]}: n={model_a.n_obs}, {labels[1]}: "
            f"n={model_b.n_obs}); the comparison is not strictly valid",
            AICComparabilityWarning,
            stacklevel=2,
        )

    if aics[0] < aics[1]:
        preferred = labels[0]
    elif aics[1] < aics[0]:
        preferred = labels[1]
    else:
        preferred = None
    logger.debug("AIC %s=%.3f, %s=%.3f", labels[0], aics[0],
                 labels[1], aics[1])

    return AICComparison(
        labels=labels,
        aic=aics,
        n_obs=(model_a.n_obs, model_b.n_obs),
        n_params=(model_a.n_params + 1, model_b.n_params + 1),
        preferred=preferred,
        comparable=comparable,
    )
