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
Descriptive summaries of the observed series, before any model is fitted.
"""

import logging

import matplotlib.pyplot as plt
import pandas as pd

from phits.data_validation import validate_its_data
from phits.plot_utils import plot_observed_rates, plot_style
from phits.transforms import RATE_MULTIPLIER, standardised_rate

logger = logging.getLogger(__name__)

SUMMARY_STATISTICS = ["min", "q1", "median", "mean", "q3", "max"]


def add_rate(
    data: pd.DataFrame,
    count: str = "aces",
    population: str = "stdpop",
    per: float = RATE_MULTIPLIER,
) -> pd.DataFrame:
    """Return a copy of ``data`` with a ``rate`` column of events per ``per``
    people."""
    data = data.copy()
    data["rate"] = standardised_rate(data[count], data[population], per)
    return data


def _five_numbers(values: pd.Series) -> pd.Series:
    """Minimum, quartiles, mean and maximum, as printed by R's ``summary``."""
    values = values.astype(float)
    return pd.Series(
        [
            values.min(),
            values.quantile(0.25),
            values.median(),
            values.mean(),
            values.quantile(0.75),
            values.max(),
        ],
        index=SUMMARY_STATISTICS,
    )


def period_summary(
    data: pd.DataFrame, column: str, intervention: str = "smokban"
) -> pd.DataFrame:
    """Summary statistics of ``column`` before and after the intervention.

    Parameters
    ----------
    data : pd.DataFrame
        The observations.
    column : str
        Column to summarise, e.g. ``"aces"`` or ``"rate"``.
    intervention : str
        The 0/1 intervention indicator.

    Returns
    -------
    pd.DataFrame
        Indexed by ``"pre"`` and ``"post"`` with columns
        ``min, q1, median, mean, q3, max``.
    """
    for col in (column, intervention):
        if col not in data.columns:
            raise ValueError(f"Column `{col}` not found in data")
    pre = data[intervention] == 0
    summary = pd.DataFrame(
        {
            "pre": _five_numbers(data.loc[pre, column]),
            "post": _five_numbers(data.loc[~pre, column]),
        }
    ).T
    summary.index.name = "period"
    return summary


def describe(data: pd.DataFrame) -> pd.DataFrame:
    """Summary statistics of every numeric column, one row per column."""
    numeric = data.select_dtypes("number")
    return pd.DataFrame({col: _five_numbers(numeric[col]) for col in numeric}).T


def plot_rates(
    data: pd.DataFrame,
    count: str = "aces",
    population: str = "stdpop",
    time: str = "time",
    intervention: str = "smokban",
    pre_only: bool = False,
    ylim: tuple[float, float] | None = (0, 300),
    title: str | None = None,
) -> tuple[plt.Figure, plt.Axes]:
    """Scatter plot of standardised rates with the post-intervention period
    shaded.

    Parameters
    ----------
    data : pd.DataFrame
        The observations. A ``year`` column, if present, labels the x axis.
    pre_only : bool
        Only show the observations before the intervention, on the full time
        axis.
    ylim : tuple, optional
        Limits of the y axis.
    title : str, optional
        Plot title.
    """
    validate_its_data(
        data, count=count, time=time, intervention=intervention, population=population
    )
    data = add_rate(data, count=count, population=population)
    pre = data[intervention] == 0
    changepoint = data.loc[pre, time].max()
    years = sorted(data["year"].unique()) if "year" in data.columns else None
    shown = data[pre] if pre_only else data

    with plot_style():
        fig, ax = plt.subplots(figsize=(7, 4))
        plot_observed_rates(
            ax,
            shown[time],
            shown["rate"],
            changepoint,
            years=years,
            ylim=ylim,
            title=title,
            end=data[time].max(),
        )
        if pre_only:
            ax.set_xlim(data[time].min() - 1, data[time].max())
    logger.debug("Plotted %d of %d observed rates", len(shown), len(data))
    return fig, ax
