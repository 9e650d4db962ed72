#   Copyright 2022 - 2025 The PyMC Labs Developers
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
"""
Functions that generate data sets used in examples and tests
"""

import numpy as np
import pandas as pd
from scipy.stats import gamma, poisson

RANDOM_SEED: int = 8927
rng: np.random.Generator = np.random.default_rng(RANDOM_SEED)


def _seasonal_log_effect(
    month: np.ndarray, amplitude: float, peak_month: float, period: int = 12
) -> np.ndarray:
    """Single harmonic seasonal effect on the log scale, peaking at `peak_month`"""
    return amplitude * np.cos(2 * np.pi * (month - peak_month) / period)


def generate_its_count_data(
    N: int = 60,
    changepoint: int = 36,
    start_year: int = 2002,
    baseline_rate: float = 200.0,
    annual_trend: float = 1.05,
    step_rate_ratio: float = 0.88,
    annual_slope_change: float = 1.0,
    seasonal_amplitude: float = 0.05,
    peak_month: float = 12.5,
    dispersion: float = 1.0,
    population: float = 380_000.0,
    population_growth: float = 0.002,
    random_state: np.random.Generator | int | None = None,
) -> pd.DataFrame:
    """
    Generates monthly event counts with a single step change.

    The expected rate per 100,000 in month ``t`` is

    ``baseline_rate * annual_trend**(t / 12) * step_rate_ratio**I(t > changepoint)
    * annual_slope_change**(I(t > changepoint) * (t - changepoint - 1) / 12)
    * exp(seasonal effect)``

    and counts are Poisson, or gamma-Poisson when ``dispersion > 1`` so that
    the variance is approximately ``dispersion`` times the mean.

    :param N:
        Number of months
    :param changepoint:
        Last month before the intervention
    :param start_year:
        Calendar year of the first month, which is always January
    :param baseline_rate:
        Rate per 100,000 at time zero
    :param annual_trend:
        Multiplicative change in the rate per year
    :param step_rate_ratio:
        Multiplicative change in the rate at the changepoint
    :param annual_slope_change:
        Additional multiplicative change per year after the changepoint
    :param seasonal_amplitude:
        Amplitude of the seasonal effect on the log scale
    :param peak_month:
        Month at which the seasonal effect peaks
    :param dispersion:
        Ratio of variance to mean, values above one give overdispersed counts
    :param population:
        Standardised population in the first month
    :param population_growth:
        Relative population growth per year
    :param random_state:
        Generator or seed, the module level generator is used if None

    Example
    --------
    >>> from phits.data.simulate_data import generate_its_count_data
    >>> df = generate_its_count_data(N=60, changepoint=36, random_state=1)
    """
    if not 0 < changepoint < N:
        raise ValueError("changepoint should fall strictly inside the series")
    if dispersion < 1:
        raise ValueError("dispersion should be at least 1")

    if random_state is None:
        random_state = rng
    elif not isinstance(random_state, np.random.Generator):
        random_state = np.random.default_rng(random_state)

    time = np.arange(1, N + 1)
    month = (time - 1) % 12 + 1
    year = start_year + (time - 1) // 12
    smokban = (time > changepoint).astype(int)
    stdpop = population * (1 + population_growth) ** ((time - 1) / 12)

    log_rate = (
        np.log(baseline_rate)
        + np.log(annual_trend) * time / 12
        + np.log(step_rate_ratio) * smokban
        + np.log(annual_slope_change) * smokban * (time - changepoint - 1) / 12
        + _seasonal_log_effect(month, seasonal_amplitude, peak_month)
    )
    mu = np.exp(log_rate) * stdpop / 10**5

    if dispersion > 1:
        # gamma mixing with mean 1 and variance (dispersion - 1) / mu
        shape = mu / (dispersion - 1)
        mu = gamma(a=shape, scale=1 / shape).rvs(random_state=random_state) * mu

    aces = poisson(mu).rvs(random_state=random_state)

    return pd.DataFrame(
        {
            "year": year,
            "month": month,
            "aces": aces,
            "time": time,
            "smokban": smokban,
            "pop": np.round(stdpop * 0.96, 1),
            "stdpop": np.round(stdpop, 1),
        }
    )
