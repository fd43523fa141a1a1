"""
Ordinary least squares models for rental listing prices.

Each fit is a pure function of (formula, data) returning an immutable
FittedModel: price ~ sqfeet + beds + baths + type for the control-only
baseline, every listing attribute for the full model, and log / Box-Cox
responses for the transformed models.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from ..core.exceptions import SingularDesignError
from .formula import DesignMatrix, Formula, build_design

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoefficientEstimate:
    """One row of a fitted coefficient table."""

    term: str
    estimate: float
    std_error: float
    t_value: float
    p_value: float


@dataclass(frozen=True)
class FittedModel:
    """
    Immutable result of an OLS fit.

    ``coefficients`` follows the design matrix column order, intercept first.
    ``aic`` is n * ln(RSS / n) + 2k with k the number of estimated
    coefficients, the criterion used by the stepwise selector.
    """

    formula: Formula
    coefficients: Tuple[CoefficientEstimate, ...]
    r_squared: float
    adj_r_squared: float
    df_resid: float
    nobs: int
    rss: float
    aic: float
    excluded_terms: Tuple[str, ...] = ()
    design: Optional[DesignMatrix] = field(default=None, repr=False, compare=False)
    results: Any = field(default=None, repr=False, compare=False)

    @property
    def n_terms(self) -> int:
        return len(self.formula.terms)

    @property
    def n_params(self) -> int:
        return len(self.coefficients)

    @property
    def params(self) -> pd.Series:
        return pd.Series({c.term: c.estimate for c in self.coefficients})

    @property
    def residuals(self) -> pd.Series:
        return self.results.resid

    @property
    def fitted_values(self) -> pd.Series:
        return self.results.fittedvalues

    def coefficient(self, term: str) -> CoefficientEstimate:
        for coef in self.coefficients:
            if coef.term == term:
                return coef
        raise KeyError(term)

    def coefficient_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "term": c.term,
                    "estimate": c.estimate,
                    "std_error": c.std_error,
                    "t_value": c.t_value,
                    "p_value": c.p_value,
                }
                for c in self.coefficients
            ]
        ).set_index("term")

    def get_model_statistics(self) -> Dict[str, float]:
        """Extract key model statistics"""
        return {
            "r_squared": self.r_squared,
            "adj_r_squared": self.adj_r_squared,
            "f_statistic": float(self.results.fvalue) if self.n_params > 1 else np.nan,
            "f_pvalue": float(self.results.f_pvalue) if self.n_params > 1 else np.nan,
            "aic": self.aic,
            "log_likelihood": float(self.results.llf),
            "n_observations": self.nobs,
            "df_resid": self.df_resid,
            "rss": self.rss,
            "rmse": float(np.sqrt(self.rss / self.df_resid)) if self.df_resid > 0 else np.nan,
        }

    def summary(self) -> str:
        """Plain-text model summary"""
        lines = [
            f"Model: {self.formula}",
            "=" * 45,
            f"R-squared: {self.r_squared:.4f}",
            f"Adjusted R-squared: {self.adj_r_squared:.4f}",
            f"AIC: {self.aic:.2f}",
            f"Observations: {self.nobs}  Residual df: {self.df_resid:.0f}",
            "",
            "Regression Coefficients:",
        ]
        for coef in self.coefficients:
            lines.append(
                f"  {coef.term}: {coef.estimate:.6f} (se {coef.std_error:.6f}) "
                f"{significance_stars(coef.p_value)}"
            )
        if self.excluded_terms:
            lines.append(f"Excluded terms: {', '.join(self.excluded_terms)}")
        return "\n".join(lines)


def significance_stars(p_value: float) -> str:
    if p_value < 0.001:
        return "***"
    elif p_value < 0.01:
        return "**"
    elif p_value < 0.05:
        return "*"
    return ""


def aic_from_rss(rss: float, nobs: int, n_params: int) -> float:
    """AIC = n * ln(RSS / n) + 2k."""
    return float(nobs * np.log(rss / nobs) + 2 * n_params)


def fit_ols(formula: Formula, data: pd.DataFrame) -> FittedModel:
    """
    Fit an OLS model for a formula.

    Args:
        formula: Model formula
        data: Cleaned listings

    Returns:
        FittedModel

    Raises:
        SingularDesignError: if the design matrix is rank-deficient
    """
    design = build_design(formula, data)
    n_obs, n_cols = design.X.shape

    rank = design.rank
    if rank < n_cols:
        raise SingularDesignError(str(formula), rank, n_cols)

    results = sm.OLS(design.y.astype(float), design.X.astype(float)).fit()

    coefficients = tuple(
        CoefficientEstimate(
            term=str(name),
            estimate=float(results.params[name]),
            std_error=float(results.bse[name]),
            t_value=float(results.tvalues[name]),
            p_value=float(results.pvalues[name]),
        )
        for name in design.X.columns
    )

    rss = float(results.ssr)
    model = FittedModel(
        formula=formula,
        coefficients=coefficients,
        r_squared=float(results.rsquared),
        adj_r_squared=float(results.rsquared_adj),
        df_resid=float(results.df_resid),
        nobs=int(n_obs),
        rss=rss,
        aic=aic_from_rss(rss, n_obs, n_cols),
        excluded_terms=design.excluded_terms,
        design=design,
        results=results,
    )

    logger.debug(
        f"Fitted '{formula}': R^2={model.r_squared:.4f}, adj R^2={model.adj_r_squared:.4f}, AIC={model.aic:.2f}"
    )
    return model


def compare_models(models: Mapping[str, FittedModel]) -> pd.DataFrame:
    """Tabulate fit statistics of named models, in the given order."""
    rows: List[Dict[str, Any]] = []
    for name, model in models.items():
        rows.append(
            {
                "model": name,
                "formula": str(model.formula),
                "n_terms": model.n_terms,
                "n_params": model.n_params,
                "r_squared": model.r_squared,
                "adj_r_squared": model.adj_r_squared,
                "aic": model.aic,
                "df_resid": model.df_resid,
            }
        )
    return pd.DataFrame(rows).set_index("model")

