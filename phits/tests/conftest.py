"""
phits Test Configuration

Functions:
* rng: random number generator with session level scope
* sicily: the bundled Sicily smoking ban data
* simulated: Poisson counts with a known step change and seasonality
"""

import matplotlib

matplotlib.use("Agg")  # Use non-interactive backend for testing

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402
from matplotlib import pyplot as plt  # noqa: E402

import phits as ph  # noqa: E402
from phits.data.simulate_data import generate_its_count_data  # noqa: E402

SEASONAL_FORMULA = "aces ~ smokban + time + harmonic(month, 2, 12)"
SLOPE_FORMULA = (
    "aces ~ smokban + time + slope_change(smokban, time, 37) + harmonic(month, 2, 12)"
)


@pytest.fixture(scope="session")
def rng() -> np.random.Generator:
    """Random number generator that can persist through a pytest session"""
    seed: int = sum(map(ord, "phits"))
    return np.random.default_rng(seed=seed)


@pytest.fixture
def sicily() -> pd.DataFrame:
    return ph.load_data("sicily")


@pytest.fixture
def simulated() -> pd.DataFrame:
    """Five years of strongly seasonal Poisson counts with a rate ratio of 0.8
    at the changepoint."""
    return generate_its_count_data(
        step_rate_ratio=0.8, seasonal_amplitude=0.2, random_state=42
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
