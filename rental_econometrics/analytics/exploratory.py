"""
Univariate and bivariate summaries of cleaned listings.
"""

import logging
from typing import Dict, List, Optional

import pandas as pd

from ..models.listing_data_processor import RESPONSE_COLUMN, categorical_columns, numeric_columns

logger = logging.getLogger(__name__)


class ExploratorySummarizer:
    """Frequency tables, numeric summaries and response breakdowns."""

    def __init__(self, response: str = RESPONSE_COLUMN):
        self.response = response

    def summarize(self, data: pd.DataFrame) -> Dict[str, object]:
        """
        Compute every summary of a cleaned listings frame.

        Args:
            data: Cleaned listings

        Returns:
            Dictionary with frequency tables, numeric summary, correlations
            and response-by-level tables
        """
        summary = {
            "n_rows": len(data),
            "frequency_tables": self.frequency_tables(data),
            "numeric_summary": self.numeric_summary(data),
            "correlations": self.correlations(data),
            "response_by_level": self.response_by_level(data),
        }
        logger.info(
            f"Summarized {len(data)} listings: {len(summary['frequency_tables'])} categorical, "
            f"{len(summary['numeric_summary'].columns)} numeric columns"
        )
        return summary

    def frequency_tables(self, data: pd.DataFrame,
                         columns: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """Count and proportion of each level, in factor level order."""
        if columns is None:
            columns = categorical_columns(data)
        tables = {}
        for col in columns:
            counts = data[col].value_counts(sort=False, dropna=False)
            tables[col] = pd.DataFrame({
                "count": counts,
                "proportion": counts / counts.sum() if counts.sum() else counts.astype(float),
            })
        return tables

    def numeric_summary(self, data: pd.DataFrame,
                        columns: Optional[List[str]] = None) -> pd.DataFrame:
        """count, mean, std, min, quartiles and max per numeric column."""
        if columns is None:
            columns = numeric_columns(data)
        if not columns:
            return pd.DataFrame()
        return data[columns].describe(percentiles=[0.25, 0.5, 0.75])

    def correlations(self, data: pd.DataFrame) -> pd.DataFrame:
        """Pearson correlation matrix of the numeric columns."""
        return data[numeric_columns(data)].corr(method="pearson")

    def response_by_level(self, data: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        """Count, mean and median response per level of each categorical column."""
        tables = {}
        for col in categorical_columns(data):
            grouped = data.groupby(col, observed=True)[self.response]
            tables[col] = grouped.agg(["count", "mean", "median"])
        return tables
