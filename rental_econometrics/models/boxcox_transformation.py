"""
Box-Cox profile likelihood for the response of a linear model.

For each lambda on a grid the response is transformed with
(y**lambda - 1) / lambda (log at lambda = 0), regressed on the formula's
design matrix, and scored by the profile log-likelihood

    l(lambda) = -n/2 * ln(RSS_lambda / n) + (lambda - 1) * sum(ln y)

The full curve is returned; choosing lambda is left to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import special, stats

from ..core.exceptions import InvalidRecordError
from .formula import Formula, build_design

logger = logging.getLogger(__name__)


def profile_log_likelihood(y: np.ndarray, X: np.ndarray, lmbda: float) -> float:
    """Profile log-likelihood of one lambda, Jacobian included."""
    n = y.shape[0]
    y_lambda = special.boxcox(y, lmbda)
    coef = np.linalg.lstsq(X, y_lambda, rcond=None)[0]
    resid = y_lambda - X @ coef
    rss = float(resid @ resid)
    return float(-0.5 * n * np.log(rss / n) + (lmbda - 1.0) * np.log(y).sum())


def lambda_grid(lmbda_min: float = -2.0, lmbda_max: float = 2.0, step: float = 0.1) -> np.ndarray:
    if lmbda_max <= lmbda_min:
        raise ValueError("lmbda_max must be greater than lmbda_min")
    grid = np.arange(lmbda_min, lmbda_max + step / 2, step)
    return np.round(grid, 10)


@dataclass(frozen=True)
class BoxCoxProfile:
    """Profile log-likelihood curve over a lambda grid."""

    formula: Formula
    lambdas: np.ndarray = field(repr=False, compare=False)
    log_likelihoods: np.ndarray = field(repr=False, compare=False)
    _y: np.ndarray = field(repr=False, compare=False)
    _X: np.ndarray = field(repr=False, compare=False)
    confidence_level: float = 0.95

    @property
    def best_index(self) -> int:
        return int(np.argmax(self.log_likelihoods))

    @property
    def lambda_max(self) -> float:
        """Grid maximizer of the profile likelihood."""
        return float(self.lambdas[self.best_index])

    @property
    def max_log_likelihood(self) -> float:
        return float(self.log_likelihoods[self.best_index])

    @property
    def cutoff(self) -> float:
        return self.max_log_likelihood - 0.5 * float(stats.chi2.ppf(self.confidence_level, df=1))

    @property
    def confidence_interval(self) -> Tuple[float, float]:
        """Grid lambdas whose likelihood is within chi2(1) / 2 of the maximum."""
        inside = self.lambdas[self.log_likelihoods >= self.cutoff]
        return float(inside.min()), float(inside.max())

    def log_likelihood_at(self, lmbda: float) -> float:
        """Exact profile log-likelihood at any lambda, on or off the grid."""
        return profile_log_likelihood(self._y, self._X, lmbda)

    def contains(self, lmbda: float) -> bool:
        return self.log_likelihood_at(lmbda) >= self.cutoff

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"lambda": self.lambdas, "log_likelihood": self.log_likelihoods})


def boxcox_profile(formula: Formula, data: pd.DataFrame,
                   lambdas: Optional[np.ndarray] = None,
                   confidence_level: float = 0.95) -> BoxCoxProfile:
    """
    Evaluate the Box-Cox profile log-likelihood of a formula's response.

    Args:
        formula: Model formula; any response transform on it is ignored
        data: Cleaned listings
        lambdas: Lambda grid (default -2 to 2 by 0.1)
        confidence_level: Level of the likelihood interval

    Returns:
        BoxCoxProfile
    """
    design = build_design(formula.with_response(None), data)
    y = design.y.to_numpy(dtype=float)
    if (y <= 0).any():
        raise InvalidRecordError(
            "Box-Cox transformation requires a strictly positive response", [formula.response.column]
        )
    X = design.X.to_numpy(dtype=float)

    if lambdas is None:
        lambdas = lambda_grid()
    lambdas = np.asarray(lambdas, dtype=float)

    log_likelihoods = np.array([profile_log_likelihood(y, X, lmbda) for lmbda in lambdas])
    profile = BoxCoxProfile(
        formula=formula.with_response(None),
        lambdas=lambdas,
        log_likelihoods=log_likelihoods,
        confidence_level=confidence_level,
        _y=y,
        _X=X,
    )

    low, high = profile.confidence_interval
    logger.info(
        f"Box-Cox profile for '{profile.formula}': lambda_max={profile.lambda_max:g}, "
        f"{confidence_level:.0%} interval [{low:g}, {high:g}]"
    )
    return profile


def compare_transformations(profile: BoxCoxProfile,
                            candidates: Optional[Mapping[str, float]] = None) -> pd.DataFrame:
    """
    Tabulate the likelihood of named candidate lambdas against the maximum.

    Args:
        profile: Evaluated profile
        candidates: Mapping of label to lambda; defaults to log, square root,
            identity and the grid maximizer

    Returns:
        DataFrame indexed by label with lambda, log-likelihood, gap to the
        maximum and whether the lambda lies in the likelihood interval
    """
    if candidates is None:
        candidates = {
            "log": 0.0,
            "sqrt": 0.5,
            "identity": 1.0,
            "profile_max": profile.lambda_max,
        }

    rows = []
    for label, lmbda in candidates.items():
        llf = profile.log_likelihood_at(lmbda)
        rows.append(
            {
                "transformation": label,
                "lambda": float(lmbda),
                "log_likelihood": llf,
                "gap_to_max": profile.max_log_likelihood - llf,
                "in_interval": llf >= profile.cutoff,
            }
        )
    return pd.DataFrame(rows).set_index("transformation")
