"""
Backward stepwise selection by AIC.

Greedy search over the lattice of sub-formulas of a full model: at each step
drop the single term whose removal gives the lowest AIC, as long as that AIC
is strictly below the current one.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .formula import Formula, Term
from .linear_regression import FittedModel, fit_ols

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepwiseStep:
    """One removal made by the selector."""

    removed_term: str
    aic_before: float
    aic_after: float


@dataclass(frozen=True)
class StepwiseResult:
    """Selected formula, its fitted model, and the removal trace."""

    formula: Formula
    model: FittedModel
    trace: Tuple[StepwiseStep, ...]
    full_model: Optional[FittedModel] = None
    excluded_terms: Tuple[str, ...] = ()

    @property
    def removed_terms(self) -> List[str]:
        return [step.removed_term for step in self.trace]

    def trace_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "step": i + 1,
                    "removed_term": step.removed_term,
                    "aic_before": step.aic_before,
                    "aic_after": step.aic_after,
                }
                for i, step in enumerate(self.trace)
            ],
            columns=["step", "removed_term", "aic_before", "aic_after"],
        )


def _removal_candidates(formula: Formula, keep: Iterable[str]) -> List[Term]:
    kept = set(keep)
    return [t for t in formula.terms if t.name not in kept and t.column not in kept]


def backward_stepwise(full_formula: Formula, data: pd.DataFrame,
                      keep: Iterable[str] = ()) -> StepwiseResult:
    """
    Backward elimination on a full model using AIC = n*ln(RSS/n) + 2k.

    Args:
        full_formula: Starting formula with every candidate term
        data: Cleaned listings
        keep: Term names (or columns) that are never removed

    Returns:
        StepwiseResult with the selected formula and the removal trace
    """
    keep = tuple(keep)
    full_model = fit_ols(full_formula, data)
    current = full_model

    # terms without design columns cannot change AIC, so they never enter the search
    excluded = full_model.excluded_terms
    if excluded:
        pruned = Formula(
            response=full_formula.response,
            terms=tuple(t for t in full_formula.terms if t.name not in excluded),
        )
        logger.info(f"Dropping terms with a single observed level: {', '.join(excluded)}")
        current = fit_ols(pruned, data)

    trace: List[StepwiseStep] = []

    logger.info(f"Backward stepwise from '{current.formula}' (AIC={current.aic:.2f})")

    while True:
        best: Optional[Tuple[Term, FittedModel]] = None
        for term in _removal_candidates(current.formula, keep):
            candidate = fit_ols(current.formula.without(term), data)
            # strict comparison keeps the earliest term on ties
            if best is None or candidate.aic < best[1].aic:
                best = (term, candidate)

        if best is None or not best[1].aic < current.aic:
            break

        term, candidate = best
        trace.append(StepwiseStep(removed_term=term.name, aic_before=current.aic, aic_after=candidate.aic))
        logger.info(f"  - {term.name}: AIC {current.aic:.2f} -> {candidate.aic:.2f}")
        current = candidate

    logger.info(
        f"Stepwise selection kept {current.n_terms} of {full_model.n_terms} terms (AIC={current.aic:.2f})"
    )
    return StepwiseResult(
        formula=current.formula,
        model=current,
        trace=tuple(trace),
        full_model=full_model,
        excluded_terms=excluded,
    )
