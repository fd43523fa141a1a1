"""
Model diagnostics for fitted listing regressions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor

from ..models.formula import INTERCEPT
from ..models.linear_regression import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HypothesisTestResult:
    """Statistic and p-value of a hypothesis test."""

    name: str
    statistic: float
    p_value: float
    significance_level: float = 0.05

    @property
    def rejects_null(self) -> bool:
        return bool(self.p_value < self.significance_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statistic": self.statistic,
            "p_value": self.p_value,
            "rejects_null": self.rejects_null,
        }


@dataclass(frozen=True)
class InfluenceResult:
    """Cook's distance per observation with the 4/n flag."""

    cooks_distance: pd.Series = field(repr=False, compare=False)
    threshold: float

    @property
    def high_influence(self) -> pd.Index:
        return self.cooks_distance.index[self.cooks_distance > self.threshold]

    @property
    def n_high_influence(self) -> int:
        return int(len(self.high_influence))

    @property
    def max_cooks_distance(self) -> float:
        return float(self.cooks_distance.max())


@dataclass(frozen=True)
class DiagnosticReport:
    """Assumption checks for one fitted model."""

    formula: str
    breusch_pagan: HypothesisTestResult
    shapiro_wilk: HypothesisTestResult
    influence: InfluenceResult
    vif: pd.DataFrame = field(repr=False, compare=False)

    @property
    def high_vif_terms(self) -> List[str]:
        return list(self.vif.index[self.vif["high_collinearity"].astype(bool).to_numpy()])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formula": self.formula,
            "breusch_pagan": self.breusch_pagan.to_dict(),
            "shapiro_wilk": self.shapiro_wilk.to_dict(),
            "influence": {
                "threshold": self.influence.threshold,
                "max_cooks_distance": self.influence.max_cooks_distance,
                "n_high_influence": self.influence.n_high_influence,
            },
            "vif": self.vif["vif"].to_dict(),
        }

    def summary(self) -> str:
        lines = [
            f"Diagnostics: {self.formula}",
            f"  Breusch-Pagan: stat={self.breusch_pagan.statistic:.4f}, p={self.breusch_pagan.p_value:.4g}"
            + (" (heteroscedasticity)" if self.breusch_pagan.rejects_null else ""),
            f"  Shapiro-Wilk: stat={self.shapiro_wilk.statistic:.4f}, p={self.shapiro_wilk.p_value:.4g}"
            + (" (non-normal residuals)" if self.shapiro_wilk.rejects_null else ""),
            f"  Cook's distance > {self.influence.threshold:.4f}: {self.influence.n_high_influence} observations "
            f"(max {self.influence.max_cooks_distance:.4f})",
        ]
        for term, row in self.vif.iterrows():
            flag = " (high)" if row["high_collinearity"] else ""
            lines.append(f"  VIF {term}: {row['vif']:.3f}{flag}")
        return "\n".join(lines)


class ModelDiagnostics:
    """Assumption diagnostics for fitted OLS models."""

    def __init__(self, significance_level: float = 0.05, vif_threshold: float = 5.0):
        """
        Initialize diagnostics.

        Args:
            significance_level: Level below which a test p-value is reported
                as rejecting its null hypothesis
            vif_threshold: VIF above which a predictor is flagged
        """
        self.significance_level = significance_level
        self.vif_threshold = vif_threshold

    def run_diagnostics(self, model: FittedModel) -> DiagnosticReport:
        """
        Run the assumption checks on a fitted model.

        Args:
            model: Fitted model

        Returns:
            DiagnosticReport; small p-values are reported, never raised
        """
        report = DiagnosticReport(
            formula=str(model.formula),
            breusch_pagan=self.breusch_pagan(model),
            shapiro_wilk=self.shapiro_wilk(model),
            influence=self.cooks_distance(model),
            vif=self.variance_inflation(model),
        )
        if report.breusch_pagan.rejects_null:
            logger.info(f"Breusch-Pagan rejects constant variance for '{report.formula}'")
        if report.high_vif_terms:
            logger.info(f"High VIF in '{report.formula}': {', '.join(report.high_vif_terms)}")
        return report

    def breusch_pagan(self, model: FittedModel) -> HypothesisTestResult:
        """Breusch-Pagan LM test of constant residual variance."""
        exog = model.design.X.to_numpy(dtype=float)
        if exog.shape[1] < 2:
            logger.warning("Breusch-Pagan test needs at least one predictor besides the intercept")
            return HypothesisTestResult("breusch_pagan", np.nan, np.nan, self.significance_level)

        lm_stat, lm_pvalue, _, _ = het_breuschpagan(np.asarray(model.residuals), exog)
        return HypothesisTestResult("breusch_pagan", float(lm_stat), float(lm_pvalue), self.significance_level)

    def shapiro_wilk(self, model: FittedModel) -> HypothesisTestResult:
        """Shapiro-Wilk test of residual normality."""
        residuals = np.asarray(model.residuals, dtype=float)
        if residuals.shape[0] < 3:
            logger.warning("Insufficient data for Shapiro-Wilk test")
            return HypothesisTestResult("shapiro_wilk", np.nan, np.nan, self.significance_level)
        if residuals.shape[0] > 5000:
            logger.warning("Shapiro-Wilk p-value may be inaccurate for more than 5000 residuals")

        shapiro_stat, shapiro_p = stats.shapiro(residuals)
        return HypothesisTestResult("shapiro_wilk", float(shapiro_stat), float(shapiro_p), self.significance_level)

    def cooks_distance(self, model: FittedModel) -> InfluenceResult:
        """Cook's distance per observation; values above 4/n are flagged."""
        influence = model.results.get_influence()
        cooks = pd.Series(influence.cooks_distance[0], index=model.design.X.index, name="cooks_distance")
        return InfluenceResult(cooks_distance=cooks, threshold=4.0 / model.nobs)

    def variance_inflation(self, model: FittedModel) -> pd.DataFrame:
        """
        VIF per numeric predictor.

        Each numeric column is regressed on every other design column,
        intercept and dummies included, and VIF = 1 / (1 - R^2).
        """
        X = model.design.X
        numeric = self._numeric_columns(model)
        exog = X.to_numpy(dtype=float)

        rows = []
        for col in numeric:
            idx = X.columns.get_loc(col)
            if X.shape[1] <= 2:
                vif = 1.0
            else:
                vif = float(variance_inflation_factor(exog, idx))
            rows.append({"term": col, "vif": vif, "high_collinearity": vif > self.vif_threshold})

        return pd.DataFrame(rows, columns=["term", "vif", "high_collinearity"]).set_index("term")

    def _numeric_columns(self, model: FittedModel) -> List[str]:
        return [
            cols[0]
            for name, cols in model.design.term_columns.items()
            if len(cols) == 1 and cols[0] == name and cols[0] != INTERCEPT
        ]


def run_model_diagnostics(model: FittedModel, significance_level: float = 0.05,
                          vif_threshold: float = 5.0) -> DiagnosticReport:
    """Convenience function to diagnose a fitted model"""
    diagnostics = ModelDiagnostics(
        significance_level=significance_level,
        vif_threshold=vif_threshold,
    )
    return diagnostics.run_diagnostics(model)
