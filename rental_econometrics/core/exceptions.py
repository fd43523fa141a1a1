"""
Error types raised by the rental listing analysis pipeline.
"""

from typing import Iterable, Optional


class ListingAnalysisError(Exception):
    """Base class for errors raised by the analysis pipeline."""


class InvalidRecordError(ListingAnalysisError):
    """A required column is missing or malformed in the listing records."""

    def __init__(self, message: str, columns: Optional[Iterable[str]] = None):
        self.columns = list(columns) if columns is not None else []
        if self.columns:
            message = f"{message}: {', '.join(self.columns)}"
        super().__init__(message)


class SingularDesignError(ListingAnalysisError):
    """The design matrix of a fit is rank-deficient."""

    def __init__(self, formula: str, rank: int, n_columns: int):
        self.formula = formula
        self.rank = rank
        self.n_columns = n_columns
        super().__init__(
            f"Design matrix for '{formula}' is rank-deficient "
            f"(rank {rank} < {n_columns} columns)"
        )
