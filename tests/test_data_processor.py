"""
Tests for listing loading and cleaning.
"""

import pandas as pd
import pytest

from rental_econometrics.core.exceptions import InvalidRecordError
from rental_econometrics.models.listing_data_processor import (
    CATEGORICAL_COLUMNS,
    EXCLUDED_COLUMNS,
    FactorSpec,
    ListingDataProcessor,
    load_listings_csv,
)


class TestListingDataProcessor:
    """Test listing cleaning."""

    def test_cleaned_rows_have_positive_beds_and_baths(self, clean_listings):
        assert len(clean_listings) > 0
        assert (clean_listings["beds"] > 0).all()
        assert (clean_listings["baths"] > 0).all()

    def test_row_count_never_grows(self, raw_listings, region):
        processor = ListingDataProcessor(region=region)
        cleaned = processor.clean(raw_listings)

        assert len(cleaned) <= len(raw_listings)
        assert processor.summary.input_rows == len(raw_listings)
        assert processor.summary.region_rows == 300
        assert processor.summary.removed["zero_beds_or_baths"] == 5
        assert processor.summary.output_rows == len(cleaned) == 295

    def test_region_and_non_predictive_columns_dropped(self, clean_listings):
        for col in EXCLUDED_COLUMNS + ["region", "state"]:
            assert col not in clean_listings.columns

    def test_region_match_ignores_case_and_whitespace(self, raw_listings):
        cleaned = ListingDataProcessor(region="  Reno / Tahoe ").clean(raw_listings)
        assert len(cleaned) == 295

    def test_categoricals_cast_with_reference_first(self, clean_listings):
        for col in CATEGORICAL_COLUMNS:
            assert isinstance(clean_listings[col].dtype, pd.CategoricalDtype)
        assert list(clean_listings["cats_allowed"].cat.categories) == ["0", "1"]
        assert clean_listings["type"].cat.categories[0] == "apartment"

    def test_configured_reference_level(self, raw_listings, region):
        processor = ListingDataProcessor(region=region, reference_levels={"type": "house"})
        cleaned = processor.clean(raw_listings)

        assert cleaned["type"].cat.categories[0] == "house"
        assert processor.factors["type"].reference == "house"
        assert sorted(cleaned["type"].cat.categories) == ["apartment", "condo", "house", "townhouse"]

    def test_invalid_flag_reference_level_raises(self, raw_listings, region):
        processor = ListingDataProcessor(region=region, reference_levels={"cats_allowed": "yes"})

        with pytest.raises(InvalidRecordError) as excinfo:
            processor.clean(raw_listings)

        assert excinfo.value.columns == ["cats_allowed"]

    def test_flag_reference_level_can_be_one(self, raw_listings, region):
        processor = ListingDataProcessor(region=region, reference_levels={"cats_allowed": "1"})
        cleaned = processor.clean(raw_listings)

        assert list(cleaned["cats_allowed"].cat.categories) == ["1", "0"]

    def test_missing_column_raises(self, raw_listings, region):
        raw = raw_listings.drop(columns=["sqfeet", "laundry_options"])

        with pytest.raises(InvalidRecordError) as excinfo:
            ListingDataProcessor(region=region).clean(raw)

        assert excinfo.value.columns == ["sqfeet", "laundry_options"]

    def test_unparseable_numeric_column_raises(self, raw_listings, region):
        raw = raw_listings.copy()
        raw["price"] = "call for price"

        with pytest.raises(InvalidRecordError):
            ListingDataProcessor(region=region).clean(raw)

    def test_invalid_flag_value_raises(self, raw_listings, region):
        raw = raw_listings.copy()
        raw.loc[10, "cats_allowed"] = 2

        with pytest.raises(InvalidRecordError):
            ListingDataProcessor(region=region).clean(raw)

    def test_unknown_region_raises(self, raw_listings):
        with pytest.raises(InvalidRecordError):
            ListingDataProcessor(region="atlantis").clean(raw_listings)

    def test_rows_with_missing_values_dropped(self, raw_listings, region):
        raw = raw_listings.copy()
        raw.loc[[20, 21], "laundry_options"] = None
        raw["sqfeet"] = raw["sqfeet"].astype(object)
        raw.loc[22, "sqfeet"] = "n/a"

        processor = ListingDataProcessor(region=region)
        cleaned = processor.clean(raw)

        assert processor.summary.removed["missing_values"] == 3
        assert len(cleaned) == 292
        assert "None" not in cleaned["laundry_options"].cat.categories

    def test_load_listings_csv(self, tmp_path, raw_listings):
        path = tmp_path / "listings.csv"
        raw_listings.to_csv(path, index=False)

        loaded = load_listings_csv(path)
        assert loaded.shape == raw_listings.shape

    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_listings_csv(tmp_path / "missing.csv")


class TestFactorSpec:
    """Test explicit factor declarations."""

    def test_reference_level_is_first(self):
        factor = FactorSpec(column="type", levels=("apartment", "condo", "house"), reference="house")
        assert factor.ordered_levels == ["house", "apartment", "condo"]
        assert list(factor.dtype.categories) == ["house", "apartment", "condo"]

    def test_unknown_reference_rejected(self):
        with pytest.raises(ValueError):
            FactorSpec(column="type", levels=("apartment",), reference="castle")

    def test_from_values_falls_back_to_first_sorted_level(self):
        values = pd.Series(["house", "condo", "condo"])
        factor = FactorSpec.from_values("type", values, reference="castle")
        assert factor.reference == "condo"
