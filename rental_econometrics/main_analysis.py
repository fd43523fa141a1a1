"""
Complete rental listing regression analysis.

clean -> explore -> control-only and full models -> backward stepwise ->
diagnostics -> Box-Cox profile -> log model -> percent-change report
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from .analytics.coefficient_report import CoefficientReporter
from .analytics.diagnostics import DiagnosticReport, ModelDiagnostics
from .analytics.exploratory import ExploratorySummarizer
from .core.config import Settings, settings as default_settings
from .core.exceptions import SingularDesignError
from .models.boxcox_transformation import BoxCoxProfile, boxcox_profile, compare_transformations, lambda_grid
from .models.formula import Formula
from .models.linear_regression import FittedModel, compare_models, fit_ols
from .models.listing_data_processor import ListingDataProcessor, categorical_columns, numeric_columns
from .models.stepwise_selection import StepwiseResult, backward_stepwise

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class AnalysisResults:
    """Everything produced by one pipeline run."""

    data: pd.DataFrame
    exploratory: Dict[str, object]
    models: Dict[str, FittedModel]
    stepwise: StepwiseResult
    diagnostics: Dict[str, DiagnosticReport]
    boxcox: BoxCoxProfile
    transformations: pd.DataFrame
    coefficient_report: pd.DataFrame
    cleaning_summary: Dict[str, object] = field(default_factory=dict)

    @property
    def comparison(self) -> pd.DataFrame:
        return compare_models(self.models)


def full_formula_for(data: pd.DataFrame, response: str = "price") -> Formula:
    """Formula with every cleaned column except the response as a term."""
    terms = [c for c in numeric_columns(data) if c != response] + categorical_columns(data)
    return Formula.from_terms(response, terms)


def fit_with_reduction(formula: Formula, data: pd.DataFrame) -> FittedModel:
    """
    Fit a formula, dropping terms from the end until the design has full rank.

    Raises:
        SingularDesignError: if no single-term reduction fits either
    """
    try:
        return fit_ols(formula, data)
    except SingularDesignError as e:
        logger.warning(f"{e}; retrying with a reduced formula")
        for term in reversed(formula.terms):
            reduced = formula.without(term)
            try:
                model = fit_ols(reduced, data)
            except SingularDesignError:
                continue
            logger.warning(f"Dropped '{term.name}' to restore full rank")
            return model
        raise


def run_complete_analysis(raw: pd.DataFrame, config: Optional[Settings] = None,
                          boxcox_lambda: Optional[float] = None) -> AnalysisResults:
    """
    Run the full analysis on raw listing records.

    Args:
        raw: Raw listings with the expected columns
        config: Settings; the module-level settings by default
        boxcox_lambda: Optional lambda chosen by the analyst from the Box-Cox
            profile; when given, a Box-Cox response model is also fitted

    Returns:
        AnalysisResults
    """
    config = config or default_settings
    response = config.response

    # Load data
    processor = ListingDataProcessor(region=config.region, reference_levels=config.reference_levels)
    data = processor.clean(raw)

    exploratory = ExploratorySummarizer(response=response).summarize(data)

    # Control-only and full models
    control_terms: List[str] = [t for t in config.control_terms if t in data.columns]
    control_formula = Formula.from_terms(response, control_terms)
    logger.info(f"Fitting control-only model: {control_formula}")
    control_model = fit_with_reduction(control_formula, data)

    full_formula = full_formula_for(data, response)
    logger.info(f"Fitting full model: {full_formula}")
    full_model = fit_with_reduction(full_formula, data)

    # Backward stepwise
    stepwise = backward_stepwise(full_model.formula, data)
    selected = stepwise.model

    # Response transformations
    grid = lambda_grid(config.boxcox_lambda_min, config.boxcox_lambda_max, config.boxcox_lambda_step)
    profile = boxcox_profile(selected.formula, data, lambdas=grid, confidence_level=config.confidence_level)
    candidates = {"log": 0.0, "identity": 1.0, "profile_max": profile.lambda_max}
    if boxcox_lambda is not None:
        candidates["chosen"] = boxcox_lambda
    transformations = compare_transformations(profile, candidates)

    log_model = fit_ols(selected.formula.with_response(0.0), data)

    models = {
        "control": control_model,
        "full": full_model,
        "stepwise": selected,
        "log": log_model,
    }
    if boxcox_lambda is not None:
        models["boxcox"] = fit_ols(selected.formula.with_response(boxcox_lambda), data)

    # Diagnostics
    diagnostics_engine = ModelDiagnostics(
        significance_level=config.significance_level,
        vif_threshold=config.vif_threshold,
    )
    diagnostics = {name: diagnostics_engine.run_diagnostics(models[name])
                   for name in ("stepwise", "log", "boxcox") if name in models}

    # Interpretation
    coefficient_report = CoefficientReporter(confidence_level=config.confidence_level).report(log_model)

    logger.info("Analysis complete")
    return AnalysisResults(
        data=data,
        exploratory=exploratory,
        models=models,
        stepwise=stepwise,
        diagnostics=diagnostics,
        boxcox=profile,
        transformations=transformations,
        coefficient_report=coefficient_report,
        cleaning_summary=processor.summary.to_dict() if processor.summary else {},
    )
