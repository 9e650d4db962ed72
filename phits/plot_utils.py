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
Plotting utility functions.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

if TYPE_CHECKING:
    from phits.experiments.interrupted_time_series import PoissonITS

LEGEND_FONT_SIZE = 12
POST_PERIOD_COLOR = "0.9"


def plot_style():
    """Context manager applying the seaborn darkgrid style for the duration of a
    plot only."""
    return sns.axes_style("darkgrid")


def shade_post_period(ax: plt.Axes, start: float, end: float) -> None:
    """Shade the post-intervention period grey, behind everything else."""
    ax.axvspan(start, end, color=POST_PERIOD_COLOR, zorder=0, lw=0)


def format_year_axis(
    ax: plt.Axes, years: Sequence[int], period: int = 12, origin: float = 0
) -> None:
    """Ticks at the boundaries between years, with each year labelled in the
    middle of its span."""
    years = list(years)
    boundaries = origin + np.arange(len(years) + 1) * period
    ax.set_xticks(boundaries)
    ax.set_xticklabels([])
    ax.set_xticks(boundaries[:-1] + period / 2, minor=True)
    ax.set_xticklabels([str(year) for year in years], minor=True)
    ax.tick_params(axis="x", which="minor", length=0)
    ax.set_xlim(boundaries[0], boundaries[-1])


def plot_observed_rates(
    ax: plt.Axes,
    time,
    rate,
    changepoint: float,
    years: Sequence[int] | None = None,
    ylim: tuple[float, float] | None = None,
    title: str | None = None,
    end: float | None = None,
    **scatter_kwargs,
) -> None:
    """Scatter of observed rates over a shaded post-intervention period, which
    runs from ``changepoint`` to ``end`` (the last time point by default)."""
    time = np.asarray(time, dtype=float)
    shade_post_period(ax, changepoint, time.max() if end is None else end)
    kwargs = {"s": 14, "facecolors": "none", "edgecolors": "k", **scatter_kwargs}
    ax.scatter(time, np.asarray(rate), **kwargs)
    if years is not None:
        format_year_axis(ax, years, origin=time.min() - 1)
    if ylim is not None:
        ax.set_ylim(*ylim)
    ax.set(xlabel="Year", ylabel="Std rate x 100,000")
    if title is not None:
        ax.set_title(title)


def plot_trend_comparison(
    experiments: Mapping[str, "PoissonITS"],
    deseasonalise: str | None = "reference",
    ylim: tuple[float, float] | None = None,
    title: str | None = None,
) -> tuple[plt.Figure, plt.Axes]:
    """Overlay the predicted trajectories of several fitted experiments on the
    observed rates of the first one.

    Parameters
    ----------
    experiments : mapping of str to PoissonITS
        Legend label to fitted experiment. All should be fitted to the same data.
    deseasonalise : {"reference", "average"} or None
        Passed to :meth:`PoissonITS.predict`.
    ylim : tuple, optional
        Limits of the y axis.
    title : str, optional
        Plot title.
    """
    if not experiments:
        raise ValueError("At least one experiment is required")

    first = next(iter(experiments.values()))
    with plot_style():
        fig, ax = plt.subplots(figsize=(7, 4))
        plot_observed_rates(
            ax,
            first.data[first.time],
            first.data["rate"],
            first.changepoint,
            years=first.years,
            ylim=ylim,
            title=title,
        )
        for i, (label, experiment) in enumerate(experiments.items()):
            prediction = experiment.predict(deseasonalise=deseasonalise)
            ax.plot(prediction.index, prediction.values, c=f"C{i}", label=label)
        ax.legend(fontsize=LEGEND_FONT_SIZE, loc="upper left")
    return fig, ax
