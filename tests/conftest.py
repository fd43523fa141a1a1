"""
Shared fixtures for the rental listing tests.
"""

import numpy as np
import pandas as pd
import pytest

from rental_econometrics.models.listing_data_processor import ListingDataProcessor

REGION = "reno / tahoe"

TYPE_EFFECTS = {"apartment": 0.0, "condo": 0.10, "house": 0.20, "townhouse": 0.05}
LAUNDRY_LEVELS = ["laundry on site", "w/d hookups", "w/d in unit"]
PARKING_LEVELS = ["attached garage", "off-street parking", "street parking"]


def make_raw_listings(n: int = 300, n_other: int = 40, seed: int = 42) -> pd.DataFrame:
    """Synthetic raw listings with a log-linear price and a few invalid rows."""
    rng = np.random.default_rng(seed)
    total = n + n_other

    sqfeet = rng.uniform(400, 2500, total).round()
    beds = rng.integers(1, 5, total).astype(float)
    baths = rng.choice([1.0, 1.5, 2.0, 2.5, 3.0], total)
    types = rng.choice(list(TYPE_EFFECTS), total)
    cats = rng.integers(0, 2, total)
    dogs = rng.integers(0, 2, total)

    log_price = (
        6.0
        + 0.0004 * sqfeet
        + 0.05 * beds
        + 0.08 * baths
        + np.array([TYPE_EFFECTS[t] for t in types])
        + 0.04 * cats
        + rng.normal(0, 0.15, total)
    )

    df = pd.DataFrame({
        "id": np.arange(total),
        "url": [f"https://example.org/listing/{i}" for i in range(total)],
        "region": [REGION] * n + ["boise"] * n_other,
        "region_url": "https://example.org",
        "price": np.exp(log_price).round(),
        "type": types,
        "sqfeet": sqfeet,
        "beds": beds,
        "baths": baths,
        "cats_allowed": cats,
        "dogs_allowed": dogs,
        "smoking_allowed": rng.integers(0, 2, total),
        "wheelchair_access": rng.integers(0, 2, total),
        "electric_vehicle_charge": rng.integers(0, 2, total),
        "comes_furnished": rng.integers(0, 2, total),
        "laundry_options": rng.choice(LAUNDRY_LEVELS, total),
        "parking_options": rng.choice(PARKING_LEVELS, total),
        "image_url": "https://example.org/img.jpg",
        "description": "Spacious unit close to downtown",
        "lat": rng.uniform(39.4, 39.6, total),
        "long": rng.uniform(-119.9, -119.7, total),
        "state": ["nv"] * n + ["id"] * n_other,
    })

    # invalid rows inside the analysed region
    df.loc[[0, 1, 2], "beds"] = 0
    df.loc[[3, 4], "baths"] = 0
    return df


@pytest.fixture
def raw_listings():
    return make_raw_listings()


@pytest.fixture
def clean_listings(raw_listings):
    return ListingDataProcessor(region=REGION).clean(raw_listings)


@pytest.fixture
def region():
    return REGION
