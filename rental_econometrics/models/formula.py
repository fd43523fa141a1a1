"""
Regression formulas and design matrix construction.

A formula is an immutable value: a (possibly transformed) response and an
ordered tuple of predictor terms. Formula strings are parsed with patsy, and
design matrices are built by patsy from a rendered formula in which every
categorical term is written as ``C(col, Treatment(reference=...))`` with the
column's declared reference level.
"""

import ast
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import patsy
from scipy import special

from ..core.exceptions import InvalidRecordError

logger = logging.getLogger(__name__)

INTERCEPT = "Intercept"

TERM_TRANSFORMS = {
    "log": np.log,
    "sqrt": np.sqrt,
    "square": np.square,
}

# Functions visible to patsy when it evaluates a rendered formula
FORMULA_NAMESPACE = dict(TERM_TRANSFORMS, boxcox=special.boxcox)


def _split_expression(code: str) -> Tuple[Optional[str], str, List[ast.expr], List[ast.keyword]]:
    """Split a patsy factor such as ``log(sqfeet)`` into function, column and extra arguments."""
    try:
        node = ast.parse(code.strip(), mode="eval").body
    except SyntaxError as e:
        raise ValueError(f"Cannot parse expression '{code}'") from e

    if isinstance(node, ast.Name):
        return None, node.id, [], []
    if (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
            and node.args and isinstance(node.args[0], ast.Name)):
        return node.func.id, node.args[0].id, list(node.args[1:]), list(node.keywords)
    raise ValueError(f"Unsupported expression '{code}'")


@dataclass(frozen=True)
class Term:
    """A predictor column, optionally wrapped in a transform."""

    column: str
    transform: Optional[str] = None

    def __post_init__(self):
        if self.transform is not None and self.transform not in TERM_TRANSFORMS:
            raise ValueError(f"Unknown term transform '{self.transform}'")

    @property
    def name(self) -> str:
        if self.transform is None:
            return self.column
        return f"{self.transform}({self.column})"

    @classmethod
    def parse(cls, text: str) -> "Term":
        func, column, extra, keywords = _split_expression(text)
        # C(col, ...) only marks a factor; levels and reference come from the data
        if func == "C":
            return cls(column=column)
        if extra or keywords:
            raise ValueError(f"Term transforms take one argument: '{text}'")
        return cls(column=column, transform=func)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ResponseTransform:
    """
    Transform of the response column.

    ``lmbda`` of None keeps the response as is, 0 is the natural log and any
    other value is the Box-Cox power transform (y**lmbda - 1) / lmbda.
    """

    column: str
    lmbda: Optional[float] = None

    @property
    def name(self) -> str:
        if self.lmbda is None:
            return self.column
        if self.lmbda == 0:
            return f"log({self.column})"
        return f"boxcox({self.column}, {float(self.lmbda)!r})"

    @classmethod
    def parse(cls, text: str) -> "ResponseTransform":
        func, column, extra, keywords = _split_expression(text)
        if func is None:
            return cls(column=column)
        if func == "log" and not extra and not keywords:
            return cls(column=column, lmbda=0.0)
        if func == "boxcox" and len(extra) == 1 and not keywords:
            return cls(column=column, lmbda=float(ast.literal_eval(extra[0])))
        raise ValueError(f"Unsupported response expression '{text}'")


@dataclass(frozen=True)
class Formula:
    """Response and ordered predictor terms of a linear model."""

    response: ResponseTransform
    terms: Tuple[Term, ...] = ()

    @classmethod
    def from_terms(cls, response: str, terms: Sequence[str],
                   lmbda: Optional[float] = None) -> "Formula":
        return cls(
            response=ResponseTransform(column=response, lmbda=lmbda),
            terms=tuple(Term.parse(t) for t in terms),
        )

    @classmethod
    def parse(cls, text: str) -> "Formula":
        """Parse ``"log(price) ~ sqfeet + beds + type"`` style formulas."""
        try:
            desc = patsy.ModelDesc.from_formula(text)
        except patsy.PatsyError as e:
            raise ValueError(f"Cannot parse formula '{text}': {e}") from e

        if len(desc.lhs_termlist) != 1 or len(desc.lhs_termlist[0].factors) != 1:
            raise ValueError(f"Formula needs exactly one response: '{text}'")
        if patsy.INTERCEPT not in desc.rhs_termlist:
            raise ValueError(f"Formulas without an intercept are not supported: '{text}'")

        terms = []
        for term in desc.rhs_termlist:
            if term == patsy.INTERCEPT:
                continue
            if len(term.factors) != 1:
                raise ValueError(f"Interaction term '{term.name()}' is not supported")
            terms.append(Term.parse(term.factors[0].code))

        response = ResponseTransform.parse(desc.lhs_termlist[0].factors[0].code)
        return cls(response=response, terms=tuple(terms))

    @property
    def term_names(self) -> List[str]:
        return [t.name for t in self.terms]

    @property
    def columns(self) -> List[str]:
        return [self.response.column] + [t.column for t in self.terms]

    def without(self, term: Term) -> "Formula":
        return Formula(response=self.response, terms=tuple(t for t in self.terms if t != term))

    def with_response(self, lmbda: Optional[float]) -> "Formula":
        return Formula(
            response=ResponseTransform(column=self.response.column, lmbda=lmbda),
            terms=self.terms,
        )

    def __str__(self) -> str:
        rhs = " + ".join(self.term_names) if self.terms else "1"
        return f"{self.response.name} ~ {rhs}"


@dataclass(frozen=True, eq=False)
class DesignMatrix:
    """Encoded response and design matrix for one formula and dataset."""

    formula: Formula
    y: pd.Series
    X: pd.DataFrame
    term_columns: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    excluded_terms: Tuple[str, ...] = ()

    @property
    def nobs(self) -> int:
        return int(self.X.shape[0])

    @property
    def rank(self) -> int:
        return int(np.linalg.matrix_rank(self.X.to_numpy(dtype=float)))


def _is_categorical(values: pd.Series) -> bool:
    return isinstance(values.dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(values)


def observed_factor(values: pd.Series) -> pd.Series:
    """
    Categorical with only the observed levels, reference level first.

    The reference is the first category of the column's dtype (the
    FactorSpec reference set by the cleaner) when it is observed, otherwise
    the first observed category. Plain string columns get sorted levels.
    """
    if isinstance(values.dtype, pd.CategoricalDtype):
        return values.cat.remove_unused_categories()
    as_text = values.astype(str)
    return as_text.astype(pd.CategoricalDtype(sorted(as_text.dropna().unique())))


def treatment_code(column: str, reference: str) -> str:
    """patsy factor for reference-level dummy encoding of a column."""
    return f"C({column}, Treatment(reference={str(reference)!r}))"


def build_design(formula: Formula, data: pd.DataFrame) -> DesignMatrix:
    """
    Build the response vector and design matrix for a formula.

    Args:
        formula: Model formula
        data: Cleaned listings

    Returns:
        DesignMatrix with an intercept column first, then each term's columns
        in formula order; dummies are named ``col[T.level]``
    """
    missing = [col for col in formula.columns if col not in data.columns]
    if missing:
        raise InvalidRecordError("Formula references unknown columns", missing)

    response = data[formula.response.column].astype(float)
    if formula.response.lmbda is not None and (response <= 0).any():
        raise InvalidRecordError(
            "Log and Box-Cox transforms require a strictly positive response", [formula.response.column]
        )

    frame = pd.DataFrame({formula.response.column: response}, index=data.index)
    factors: Dict[str, patsy.EvalFactor] = {}
    excluded: List[str] = []

    for term in formula.terms:
        if term.name in factors:
            continue
        values = data[term.column]
        if _is_categorical(values):
            if term.transform is not None:
                raise ValueError(f"Cannot apply '{term.transform}' to categorical column '{term.column}'")
            factor = observed_factor(values)
            levels = list(factor.cat.categories)
            if len(levels) <= 1:
                logger.warning(f"Term '{term.name}' has a single observed level; excluded from the design")
                excluded.append(term.name)
                continue
            frame[term.column] = factor
            code = treatment_code(term.column, levels[0])
        else:
            x = values.astype(float)
            if term.transform == "log" and (x <= 0).any():
                raise InvalidRecordError("'log' transform requires positive values", [term.column])
            if term.transform == "sqrt" and (x < 0).any():
                raise InvalidRecordError("'sqrt' transform requires non-negative values", [term.column])
            frame[term.column] = x
            code = term.name
        factors[term.name] = patsy.EvalFactor(code)

    rhs = " + ".join(f.code for f in factors.values()) or "1"
    try:
        y, X = patsy.dmatrices(
            f"{formula.response.name} ~ {rhs}",
            frame,
            eval_env=patsy.EvalEnvironment([FORMULA_NAMESPACE]),
            NA_action="raise",
            return_type="dataframe",
        )
    except patsy.PatsyError as e:
        raise InvalidRecordError(f"Could not build the design matrix for '{formula}': {e}") from e

    # patsy groups terms by factor type; restore formula order and column names
    info = X.design_info
    slices = {term.factors[0]: span for term, span in info.term_slices.items() if term.factors}
    blocks = [X[[INTERCEPT]]]
    term_columns: Dict[str, Tuple[str, ...]] = {}
    for name, factor in factors.items():
        patsy_columns = info.column_names[slices[factor]]
        renamed = {col: name + col[len(factor.name()):] for col in patsy_columns}
        blocks.append(X[patsy_columns].rename(columns=renamed))
        term_columns[name] = tuple(renamed.values())

    return DesignMatrix(
        formula=formula,
        y=y.iloc[:, 0].rename(formula.response.name),
        X=pd.concat(blocks, axis=1),
        term_columns=term_columns,
        excluded_terms=tuple(excluded),
    )
