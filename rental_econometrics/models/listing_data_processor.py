"""
Data processor for rental listing records.

Filters the raw listings to a single region, drops identifier, free-text and
geo columns, coerces numeric fields, removes invalid rows and casts the flag
and multi-level categorical columns to explicit factors with a declared
reference level.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd

from ..core.exceptions import InvalidRecordError

logger = logging.getLogger(__name__)

RESPONSE_COLUMN = "price"
NUMERIC_COLUMNS = ["price", "sqfeet", "beds", "baths"]
FLAG_COLUMNS = [
    "cats_allowed",
    "dogs_allowed",
    "smoking_allowed",
    "wheelchair_access",
    "electric_vehicle_charge",
    "comes_furnished",
]
MULTILEVEL_COLUMNS = ["type", "laundry_options", "parking_options"]
CATEGORICAL_COLUMNS = FLAG_COLUMNS + MULTILEVEL_COLUMNS
LOCATION_COLUMNS = ["region", "state"]
EXCLUDED_COLUMNS = ["id", "url", "region_url", "image_url", "lat", "long", "description"]

REQUIRED_COLUMNS = NUMERIC_COLUMNS + LOCATION_COLUMNS + CATEGORICAL_COLUMNS
ANALYSIS_COLUMNS = NUMERIC_COLUMNS + CATEGORICAL_COLUMNS


@dataclass(frozen=True)
class FactorSpec:
    """Finite set of levels for a categorical column, reference level first."""

    column: str
    levels: Tuple[str, ...]
    reference: str

    def __post_init__(self):
        if self.reference not in self.levels:
            raise ValueError(
                f"Reference level '{self.reference}' is not a level of '{self.column}'"
            )

    @property
    def ordered_levels(self) -> List[str]:
        return [self.reference] + [lvl for lvl in self.levels if lvl != self.reference]

    @property
    def dtype(self) -> pd.CategoricalDtype:
        return pd.CategoricalDtype(categories=self.ordered_levels, ordered=False)

    @classmethod
    def from_values(cls, column: str, values: pd.Series,
                    reference: Optional[str] = None) -> "FactorSpec":
        """Build a factor from the observed values, levels in sorted order."""
        levels = tuple(sorted(str(v) for v in values.dropna().unique()))
        if not levels:
            raise InvalidRecordError("Categorical column has no observed levels", [column])
        if reference is None:
            reference = levels[0]
        elif reference not in levels:
            logger.warning(
                f"Configured reference level '{reference}' for '{column}' was not observed; "
                f"using '{levels[0]}'"
            )
            reference = levels[0]
        return cls(column=column, levels=levels, reference=reference)


@dataclass
class CleaningSummary:
    """Row counts recorded while cleaning the listings."""

    region: str
    input_rows: int
    region_rows: int = 0
    removed: Dict[str, int] = field(default_factory=dict)
    output_rows: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "region": self.region,
            "input_rows": self.input_rows,
            "region_rows": self.region_rows,
            "removed": dict(self.removed),
            "output_rows": self.output_rows,
        }


def load_listings_csv(path: Union[str, Path]) -> pd.DataFrame:
    """Read the raw listings CSV."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Listings file not found: {path}")

    df = pd.read_csv(path)
    logger.info(f"Loaded {len(df)} listings with {len(df.columns)} columns from {path}")
    return df


class ListingDataProcessor:
    """
    Cleaner for rental listing records.

    The processor keeps the factor declarations and the summary of the last
    cleaning run; the cleaned frame itself is returned, never stored.
    """

    def __init__(self, region: str, reference_levels: Optional[Mapping[str, str]] = None):
        """
        Initialize the processor.

        Args:
            region: Region value the listings are filtered to
            reference_levels: Optional mapping of categorical column to the
                level used as the dummy-encoding baseline
        """
        self.region = region
        self.reference_levels = dict(reference_levels or {})
        self.factors: Dict[str, FactorSpec] = {}
        self.summary: Optional[CleaningSummary] = None

    def validate_columns(self, raw: pd.DataFrame) -> None:
        """Raise InvalidRecordError if any required column is absent."""
        missing = [col for col in REQUIRED_COLUMNS if col not in raw.columns]
        if missing:
            raise InvalidRecordError("Required columns missing", missing)

    def clean(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Clean raw listings into an analysis-ready frame.

        Args:
            raw: Raw listing records

        Returns:
            Cleaned DataFrame with numeric and factor columns only
        """
        self.validate_columns(raw)
        summary = CleaningSummary(region=self.region, input_rows=len(raw))

        df = self._filter_region(raw)
        summary.region_rows = len(df)
        if df.empty:
            raise InvalidRecordError(f"No listings found for region '{self.region}'")

        df = df.drop(columns=[c for c in EXCLUDED_COLUMNS + LOCATION_COLUMNS if c in df.columns])
        df = df[ANALYSIS_COLUMNS].copy()

        df = self._coerce_numeric(df)
        df = self._coerce_flags(df)

        before = len(df)
        df = df.dropna(subset=ANALYSIS_COLUMNS)
        summary.removed["missing_values"] = before - len(df)

        before = len(df)
        df = df[(df["beds"] > 0) & (df["baths"] > 0)]
        summary.removed["zero_beds_or_baths"] = before - len(df)

        before = len(df)
        df = df[(df["price"] > 0) & (df["sqfeet"] > 0)]
        summary.removed["non_positive_price_or_sqfeet"] = before - len(df)

        if df.empty:
            raise InvalidRecordError(f"No valid listings remain for region '{self.region}'")

        df = self._cast_factors(df)
        df = df.reset_index(drop=True)

        summary.output_rows = len(df)
        self.summary = summary

        for reason, count in summary.removed.items():
            if count:
                logger.info(f"Removed {count} listings: {reason}")
        logger.info(
            f"Cleaned listings for '{self.region}': {summary.input_rows} -> {summary.output_rows} rows"
        )
        return df

    def _filter_region(self, raw: pd.DataFrame) -> pd.DataFrame:
        target = self.region.strip().lower()
        mask = raw["region"].astype(str).str.strip().str.lower() == target
        return raw.loc[mask]

    def _coerce_numeric(self, df: pd.DataFrame) -> pd.DataFrame:
        for col in NUMERIC_COLUMNS:
            coerced = pd.to_numeric(df[col], errors="coerce")
            if coerced.notna().sum() == 0:
                raise InvalidRecordError("Numeric column has no parseable values", [col])
            n_bad = int(coerced.isna().sum() - df[col].isna().sum())
            if n_bad:
                logger.warning(f"{n_bad} non-numeric values in '{col}' treated as missing")
            df[col] = coerced.astype(float)
        return df

    def _coerce_flags(self, df: pd.DataFrame) -> pd.DataFrame:
        for col in FLAG_COLUMNS:
            coerced = pd.to_numeric(df[col], errors="coerce")
            invalid = coerced.notna() & ~coerced.isin([0, 1])
            if invalid.any() or (coerced.isna() & df[col].notna()).any():
                raise InvalidRecordError("Flag column must contain only 0/1 values", [col])
            df[col] = coerced
        return df

    def _cast_factors(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        self.factors = {}
        for col in FLAG_COLUMNS:
            values = df[col].astype(int).astype(str)
            reference = str(self.reference_levels.get(col, "0"))
            if reference not in ("0", "1"):
                raise InvalidRecordError(
                    f"Reference level '{reference}' is not a level of a 0/1 flag", [col]
                )
            factor = FactorSpec(column=col, levels=("0", "1"), reference=reference)
            df[col] = values.astype(factor.dtype)
            self.factors[col] = factor

        for col in MULTILEVEL_COLUMNS:
            values = df[col].astype(str).str.strip()
            factor = FactorSpec.from_values(col, values, self.reference_levels.get(col))
            df[col] = values.astype(factor.dtype)
            self.factors[col] = factor
        return df


def clean_listings(raw: pd.DataFrame, region: str,
                   reference_levels: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
    """
    Convenience function to clean raw listings for one region

    Args:
        raw: Raw listing records
        region: Region value to keep
        reference_levels: Optional reference level per categorical column

    Returns:
        Cleaned DataFrame
    """
    processor = ListingDataProcessor(region=region, reference_levels=reference_levels)
    return processor.clean(raw)


def numeric_columns(df: pd.DataFrame) -> List[str]:
    """Numeric columns of a cleaned frame, in column order."""
    return [col for col in df.columns if pd.api.types.is_numeric_dtype(df[col])]


def categorical_columns(df: pd.DataFrame) -> List[str]:
    """Categorical columns of a cleaned frame, in column order."""
    return [col for col in df.columns if isinstance(df[col].dtype, pd.CategoricalDtype)]
