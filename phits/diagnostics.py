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
Residual diagnostics for count models fitted to time series.

The independence assumption of a Poisson regression is checked by looking at
the autocorrelation and partial autocorrelation of its residuals. Nothing here
changes a model: significant autocorrelation only produces a warning, and it is
left to the analyst to revise the model (more harmonic terms, a different
offset, and so on).
"""

import warnings
from dataclasses import dataclass
from typing import Literal

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy.stats import norm
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf, pacf

from phits.custom_exceptions import AutocorrelationWarning
from phits.glm import GLMFit
from phits.plot_utils import plot_style

ResidualKind = Literal["deviance", "pearson"]


def residuals(fit: GLMFit, kind: ResidualKind = "deviance") -> np.ndarray:
    """Deviance or Pearson residuals of a fitted model."""
    if kind == "deviance":
        return np.asarray(fit.resid_deviance)
    elif kind == "pearson":
        return np.asarray(fit.resid_pearson)
    raise ValueError(f"kind should be 'deviance' or 'pearson', got {kind!r}")


def default_nlags(nobs: int) -> int:
    """Default number of lags, ``floor(10 * log10(nobs))`` capped at ``nobs - 1``."""
    if nobs < 2:
        raise ValueError("At least two observations are needed")
    return int(min(np.floor(10 * np.log10(nobs)), nobs - 1))


@dataclass
class ResidualDiagnostics:
    """Autocorrelation summary of a residual series.

    Attributes
    ----------
    residuals : np.ndarray
        The residuals analysed.
    acf : np.ndarray
        Autocorrelation at lags ``0..nlags``.
    pacf : np.ndarray
        Partial autocorrelation at lags ``0..len(pacf) - 1``. Fewer lags than
        the ACF may be available for short series.
    bound : float
        Half width of the approximate white noise band, ``z / sqrt(n)``.
    ljung_box : pd.DataFrame
        Ljung-Box statistics ``lb_stat`` and ``lb_pvalue`` indexed by lag.
    alpha : float
        Significance level used for the band and the Ljung-Box test.
    """

    residuals: np.ndarray
    acf: np.ndarray
    pacf: np.ndarray
    bound: float
    ljung_box: pd.DataFrame
    alpha: float = 0.05

    @property
    def nlags(self) -> int:
        return len(self.acf) - 1

    @property
    def lag1(self) -> float:
        """Autocorrelation at lag one."""
        return float(self.acf[1])

    @property
    def significant_lags(self) -> list[int]:
        """Lags (excluding zero) whose autocorrelation lies outside the band."""
        return [
            lag for lag in range(1, len(self.acf)) if abs(self.acf[lag]) > self.bound
        ]

    @property
    def autocorrelated(self) -> bool:
        """Whether the Ljung-Box test rejects independence at any lag."""
        return bool((self.ljung_box["lb_pvalue"] < self.alpha).any())

    def to_frame(self) -> pd.DataFrame:
        """ACF and PACF by lag."""
        frame = pd.DataFrame(
            {"acf": self.acf}, index=pd.RangeIndex(len(self.acf), name="lag")
        )
        frame["pacf"] = pd.Series(self.pacf, index=pd.RangeIndex(len(self.pacf)))
        return frame


def autocorrelation(
    resid, nlags: int | None = None, alpha: float = 0.05
) -> ResidualDiagnostics:
    """Compute the ACF, PACF and Ljung-Box test of a residual series.

    Parameters
    ----------
    resid : array-like
        Residuals in time order.
    nlags : int, optional
        Number of lags. Defaults to :func:`default_nlags`.
    alpha : float
        Significance level.
    """
    resid = np.asarray(resid, dtype=float)
    nobs = len(resid)
    if nlags is None:
        nlags = default_nlags(nobs)
    if not 1 <= nlags < nobs:
        raise ValueError(f"nlags should be between 1 and {nobs - 1}, got {nlags}")

    pacf_lags = min(nlags, nobs // 2 - 1)
    if pacf_lags < 1:
        raise ValueError("Too few observations for a partial autocorrelation")

    return ResidualDiagnostics(
        residuals=resid,
        acf=acf(resid, nlags=nlags, fft=False),
        pacf=pacf(resid, nlags=pacf_lags, method="ywm"),
        bound=float(norm.ppf(1 - alpha / 2) / np.sqrt(nobs)),
        ljung_box=acorr_ljungbox(resid, lags=nlags),
        alpha=alpha,
    )


def check_autocorrelation(diagnostics: ResidualDiagnostics) -> bool:
    """Warn if the residuals are autocorrelated.

    Returns
    -------
    bool
        True if an :class:`AutocorrelationWarning` was issued.
    """
    if diagnostics.autocorrelated:
        lags = diagnostics.significant_lags
        warnings.warn(
            "Significant residual autocorrelation detected "
            f"(Ljung-Box p = {diagnostics.ljung_box['lb_pvalue'].min():.3g}; "
            f"lags outside the {int(round((1 - diagnostics.alpha) * 100))}% band: "
            f"{lags}). Consider adding harmonic terms or revising the model.",
            AutocorrelationWarning,
            stacklevel=2,
        )
        return True
    return False


def plot_residuals(
    time, resid, ylim: tuple[float, float] | None = None, ax: plt.Axes | None = None
) -> tuple[plt.Figure, plt.Axes]:
    """Plot residuals against time with a dashed line at zero."""
    with plot_style():
        if ax is None:
            fig, ax = plt.subplots(figsize=(7, 4))
        else:
            fig = ax.figure
        ax.scatter(np.asarray(time), np.asarray(resid), s=14, color="0.6")
        ax.axhline(y=0, ls="--", lw=2, c="k")
        if ylim is not None:
            ax.set_ylim(*ylim)
        ax.set(
            title="Residuals over time", xlabel="Time", ylabel="Deviance residuals"
        )
    return fig, ax


def plot_acf_pacf(
    resid, lags: int | None = None, alpha: float = 0.05
) -> tuple[plt.Figure, np.ndarray]:
    """ACF and PACF plots of residuals, one above the other."""
    resid = np.asarray(resid, dtype=float)
    if lags is None:
        lags = default_nlags(len(resid))
    with plot_style():
        fig, axes = plt.subplots(2, 1, figsize=(7, 6))
        plot_acf(resid, lags=lags, ax=axes[0], alpha=alpha)
        axes[0].set_title("Residual Autocorrelation Function (ACF)")
        plot_pacf(
            resid,
            lags=min(lags, len(resid) // 2 - 1),
            ax=axes[1],
            alpha=alpha,
            method="ywm",
        )
        axes[1].set_title("Residual Partial Autocorrelation Function (PACF)")
        fig.tight_layout()
    return fig, axes
