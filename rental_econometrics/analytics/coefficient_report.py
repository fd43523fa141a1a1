"""
Coefficient interpretation for log-price models.

A coefficient b on the log scale corresponds to a 100 * (exp(b) - 1) percent
change in price per unit change of the predictor (or relative to the
reference level for a dummy).
"""

import logging
from typing import Union

import numpy as np
import pandas as pd
from scipy import stats

from ..models.formula import INTERCEPT
from ..models.linear_regression import FittedModel, significance_stars

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray, pd.Series]


def percent_change(beta: ArrayLike) -> ArrayLike:
    """100 * (exp(beta) - 1)"""
    return 100.0 * np.expm1(beta)


def normal_interval(estimate: ArrayLike, std_error: ArrayLike, confidence_level: float = 0.95):
    """estimate -/+ z * std_error with z the normal quantile at (1 + level) / 2."""
    z = stats.norm.ppf(0.5 + confidence_level / 2.0)
    return estimate - z * std_error, estimate + z * std_error


class CoefficientReporter:
    """Percent-change table of a fitted log-scale model."""

    def __init__(self, confidence_level: float = 0.95):
        """
        Initialize the reporter.

        Args:
            confidence_level: Level of the normal-approximation intervals
        """
        self.confidence_level = confidence_level

    def report(self, model: FittedModel, include_intercept: bool = False) -> pd.DataFrame:
        """
        Build the ranked coefficient table.

        Args:
            model: Fitted model, normally with a log response
            include_intercept: Keep the intercept row

        Returns:
            DataFrame indexed by term, ranked by absolute percent change
        """
        if model.formula.response.lmbda != 0:
            logger.warning(
                f"Response of '{model.formula}' is not log-scale; percent changes are not interpretable"
            )

        table = model.coefficient_table()
        if not include_intercept:
            table = table.drop(index=INTERCEPT, errors="ignore")

        lower, upper = normal_interval(table["estimate"], table["std_error"], self.confidence_level)
        table = table.assign(
            ci_lower=lower,
            ci_upper=upper,
            percent_change=percent_change(table["estimate"]),
            pct_ci_lower=percent_change(lower),
            pct_ci_upper=percent_change(upper),
            significance=table["p_value"].map(significance_stars),
        )

        order = table["percent_change"].abs().sort_values(ascending=False, kind="mergesort").index
        return table.loc[order]

    def format_report(self, table: pd.DataFrame) -> str:
        level = f"{self.confidence_level:.0%}"
        lines = [f"{'term':<40} {'% change':>10}   {level} interval"]
        for term, row in table.iterrows():
            lines.append(
                f"{str(term):<40} {row['percent_change']:>10.2f}   "
                f"[{row['pct_ci_lower']:.2f}, {row['pct_ci_upper']:.2f}] {row['significance']}"
            )
        return "\n".join(lines)
