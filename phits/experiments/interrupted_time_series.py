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
Interrupted time series analysis with Poisson and quasi-Poisson regression
"""

import logging
import re
from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd
from matplotlib import pyplot as plt
from patsy import EvalEnvironment, PatsyError, build_design_matrices, dmatrices
from scipy.stats import norm

from phits.comparison import FTestResult, f_test
from phits.custom_exceptions import FormulaException
from phits.data_validation import ITSDataValidator
from phits.diagnostics import (
    ResidualDiagnostics,
    ResidualKind,
    autocorrelation,
    check_autocorrelation,
    plot_acf_pacf,
    plot_residuals,
)
from phits.diagnostics import residuals as fit_residuals
from phits.glm import Family, fit_glm
from phits.plot_utils import LEGEND_FONT_SIZE, plot_observed_rates
from phits.reporting import (
    EffectEstimate,
    EffectSummary,
    _summarise_effects,
    rate_ratio_table,
)
from phits.transforms import (
    DEFAULT_PERIOD,
    FORMULA_NAMESPACE,
    RATE_MULTIPLIER,
    log_offset,
)
from phits.utils import round_num

from .base import BaseExperiment

logger = logging.getLogger(__name__)

DESEASONALISE_OPTIONS = ("reference", "average")


def _mentions(label: str, name: str) -> bool:
    """Whether a design matrix label refers to the variable ``name``."""
    return re.search(rf"(?<![\w.]){re.escape(name)}(?![\w.])", label) is not None


class PoissonITS(ITSDataValidator, BaseExperiment):
    """
    Interrupted time series analysis of event counts with a single
    changepoint, fitted as a log-link Poisson or quasi-Poisson regression with
    ``log(population)`` as offset.

    :param data:
        A pandas dataframe with one row per time unit
    :param formula:
        A model formula. Besides patsy's own operators, the helpers
        :func:`~phits.transforms.harmonic` and
        :func:`~phits.transforms.slope_change` can be used.
    :param offset:
        Column holding the population at risk, ``log`` of which is the offset
    :param intervention:
        Column holding the 0/1 intervention indicator
    :param time:
        Column holding the elapsed time index
    :param season:
        Column holding the position within the seasonal cycle (the calendar
        month). Used to build prediction grids and to deseasonalise.
    :param family:
        ``"poisson"`` or ``"quasipoisson"``
    :param period:
        Length of the seasonal cycle in units of ``time``
    :param reference_month:
        Value of ``season`` at which deseasonalised predictions are made
    :param maxiter:
        Maximum number of IRLS iterations
    :param tol:
        IRLS convergence tolerance

    Example
    --------
    >>> import phits as ph
    >>> df = ph.load_data("sicily")
    >>> result = ph.PoissonITS(
    ...     df,
    ...     formula="aces ~ smokban + time + harmonic(month, 2, 12)",
    ...     family="quasipoisson",
    ... )
    >>> result.step_change().estimate < 1
    True
    """

    expt_type = "Poisson Interrupted Time Series"

    def __init__(
        self,
        data: pd.DataFrame,
        formula: str,
        offset: str = "stdpop",
        intervention: str = "smokban",
        time: str = "time",
        season: str | None = "month",
        family: Family = "poisson",
        period: int = DEFAULT_PERIOD,
        reference_month: float = 6,
        maxiter: int = 100,
        tol: float = 1e-8,
    ) -> None:
        self.formula = formula
        self.offset = offset
        self.intervention = intervention
        self.time = time
        self.season = season
        self.family = family
        self.period = period
        self.reference_month = reference_month
        self.maxiter = maxiter
        self.tol = tol
        self._input_validation(data)

        self.data = data.copy()
        self.data[self.intervention] = self.data[self.intervention].astype(int)
        pre = self.data[self.intervention] == 0
        self.changepoint = float(self.data.loc[pre, self.time].max())
        self.intervention_start = float(self.data.loc[~pre, self.time].min())
        self.years = (
            sorted(int(year) for year in self.data["year"].unique())
            if "year" in self.data.columns
            else None
        )

        self._build_design(self.data)
        self.data["rate"] = self.y / self.data[self.offset] * RATE_MULTIPLIER
        self.algorithm()

    def _build_design(self, data: pd.DataFrame) -> None:
        """Build the design matrices and the log offset for the observations."""
        env = EvalEnvironment.capture(0).with_outer_namespace(FORMULA_NAMESPACE)
        try:
            y, X = dmatrices(self.formula, data, eval_env=env, NA_action="raise")
        except PatsyError as e:
            raise FormulaException(f"Could not build the design matrix: {e}") from e

        self.outcome_variable_name = y.design_info.column_names[0]
        self._x_design_info = X.design_info
        self.labels = list(X.design_info.column_names)
        self.y = np.asarray(y).ravel()
        self.X = np.asarray(X)
        self.log_offset = log_offset(data[self.offset])

        if self.intervention not in self.labels:
            raise FormulaException(
                f"`{self.intervention}` should enter the formula as a numeric "
                f"main effect, got columns {self.labels}"
            )
        if self.time not in self.labels:
            raise FormulaException(
                f"`{self.time}` should enter the formula as a numeric main effect, "
                f"got columns {self.labels}"
            )

        interactions = [
            label
            for label in self.labels
            if label not in (self.intervention, self.time)
            and _mentions(label, self.intervention)
            and _mentions(label, self.time)
        ]
        if len(interactions) > 1:
            raise FormulaException(
                f"Expected at most one slope change term, got {interactions}"
            )
        self.interaction_label = interactions[0] if interactions else None

    def algorithm(self) -> None:
        """Fit the count model to all observations."""
        self.fit_result = fit_glm(
            self.y,
            self.X,
            self.log_offset,
            family=self.family,
            labels=self.labels,
            maxiter=self.maxiter,
            tol=self.tol,
        )
        logger.info(
            "Fitted %s model `%s`: deviance=%.3f on %d df, dispersion=%.3f",
            self.family,
            self.formula,
            self.fit_result.deviance,
            self.fit_result.df_resid,
            self.fit_result.dispersion,
        )

    # Effects -------------------------------------------------------------

    def _linear_combination(
        self, weights: Mapping[str, float], name: str, alpha: float = 0.05
    ) -> EffectEstimate:
        """Exponentiated linear combination of coefficients with its Wald
        interval."""
        fit = self.fit_result
        w = np.zeros(len(fit.labels))
        for label, weight in weights.items():
            w[fit._index(label)] = weight
        estimate = float(w @ fit.params)
        std_err = float(np.sqrt(w @ fit.cov_params @ w))
        z = norm.ppf(1 - alpha / 2)
        return EffectEstimate(
            name=name,
            estimate=float(np.exp(estimate)),
            lower=float(np.exp(estimate - z * std_err)),
            upper=float(np.exp(estimate + z * std_err)),
            p_value=float(2 * norm.sf(abs(estimate / std_err))),
            alpha=alpha,
        )

    @property
    def has_slope_change(self) -> bool:
        """Whether the model includes a change in slope after the intervention."""
        return self.interaction_label is not None

    def step_change(self, alpha: float = 0.05) -> EffectEstimate:
        """Rate ratio for the level change at the intervention.

        With a centred :func:`~phits.transforms.slope_change` term this is the
        change at the first post-intervention time point. With an uncentred
        ``smokban:time`` interaction it refers to ``time == 0``.
        """
        return self._linear_combination({self.intervention: 1}, "step_change", alpha)

    def trend(self, per: float = DEFAULT_PERIOD, alpha: float = 0.05) -> EffectEstimate:
        """Rate ratio per ``per`` time units of the underlying (pre-intervention)
        trend. The default gives the annual change for monthly data."""
        return self._linear_combination({self.time: per}, "trend", alpha)

    def slope_change_ratio(
        self, per: float = DEFAULT_PERIOD, alpha: float = 0.05
    ) -> EffectEstimate:
        """Ratio of the post- to the pre-intervention trend, per ``per`` time
        units."""
        if not self.has_slope_change:
            raise ValueError("The model has no slope change term")
        return self._linear_combination(
            {self.interaction_label: per}, "slope_change", alpha
        )

    def post_trend(
        self, per: float = DEFAULT_PERIOD, alpha: float = 0.05
    ) -> EffectEstimate:
        """Rate ratio per ``per`` time units after the intervention. Equal to
        :meth:`trend` when the model has no slope change term."""
        weights = {self.time: per}
        if self.has_slope_change:
            weights[self.interaction_label] = per
        return self._linear_combination(weights, "post_trend", alpha)

    # Prediction ----------------------------------------------------------

    def prediction_grid(self, resolution: int = 10) -> pd.DataFrame:
        """Dense grid of time points spanning the observations.

        ``time`` runs from ``1 / resolution`` past the time point before the
        first observation up to the last observation. The season follows the
        observed calendar cycle continuously, the intervention is on for
        times after the changepoint and the population is fixed at its mean.

        Parameters
        ----------
        resolution : int
            Number of grid points per time unit.
        """
        if int(resolution) != resolution or resolution < 1:
            raise ValueError("resolution should be a positive integer")
        observed = self.data[self.time]
        first = float(observed.min())
        n = int(round(float(observed.max()) - first)) + 1
        time = first - 1 + np.arange(1, n * resolution + 1) / resolution

        grid = pd.DataFrame({self.time: time})
        if self.season is not None and self.season in self.data.columns:
            shift = float(self.data[self.season].iloc[0]) - first
            season = np.mod(time + shift, self.period)
            season[np.isclose(season, 0) | np.isclose(season, self.period)] = (
                self.period
            )
            grid[self.season] = season
        grid[self.intervention] = (time > self.changepoint).astype(int)
        grid[self.offset] = float(self.data[self.offset].mean())
        return grid

    def _design_for(self, grid: pd.DataFrame) -> np.ndarray:
        try:
            (X,) = build_design_matrices(
                [self._x_design_info], grid, NA_action="raise"
            )
        except PatsyError as e:
            raise FormulaException(
                f"Could not build the design matrix for prediction: {e}"
            ) from e
        return np.asarray(X)

    def predict(
        self,
        grid: pd.DataFrame | None = None,
        counterfactual: bool = False,
        deseasonalise: str | None = None,
    ) -> pd.Series:
        """Predicted rates per 100,000.

        Parameters
        ----------
        grid : pd.DataFrame, optional
            Covariate values to predict at. Defaults to
            :meth:`prediction_grid`. Pass ``self.data`` for fitted rates at
            the observations.
        counterfactual : bool
            Predict as if the intervention never happened, i.e. with the
            intervention indicator (and every term built from it) set to zero.
        deseasonalise : {"reference", "average"}, optional
            ``"reference"`` predicts every point at ``reference_month``.
            ``"average"`` replaces each harmonic column by its mean over the
            observations.

        Returns
        -------
        pd.Series
            Rates indexed by ``time``.
        """
        if deseasonalise is not None and deseasonalise not in DESEASONALISE_OPTIONS:
            raise ValueError(
                f"deseasonalise should be one of {DESEASONALISE_OPTIONS} or None, "
                f"got {deseasonalise!r}"
            )
        grid = self.prediction_grid() if grid is None else grid.copy()
        grid[self.intervention] = grid[self.intervention].astype(int)
        if counterfactual:
            grid[self.intervention] = 0
        if deseasonalise == "reference":
            if self.season is None:
                raise ValueError("A season column is required to deseasonalise")
            grid[self.season] = self.reference_month

        X = self._design_for(grid)
        if deseasonalise == "average":
            seasonal = [
                i
                for i, label in enumerate(self.labels)
                if label.startswith("harmonic(")
            ]
            X[:, seasonal] = self.X[:, seasonal].mean(axis=0)

        population = np.asarray(grid[self.offset], dtype=float)
        expected = self.fit_result.predict(X, log_offset(population))
        return pd.Series(
            expected / population * RATE_MULTIPLIER,
            index=pd.Index(np.asarray(grid[self.time]), name=self.time),
            name="rate",
        )

    def get_plot_data(self) -> pd.DataFrame:
        """Observed, fitted and counterfactual rates at each observation."""
        plot_data = self.data[[self.time, self.intervention, "rate"]].copy()
        plot_data["fitted"] = self.predict(grid=self.data).to_numpy()
        plot_data["counterfactual"] = self.predict(
            grid=self.data, counterfactual=True
        ).to_numpy()
        self.plot_data = plot_data
        return plot_data

    def _plot(
        self,
        lines: Sequence[str] = ("factual", "counterfactual"),
        resolution: int = 10,
        ylim: tuple[float, float] | None = None,
        title: str | None = None,
    ) -> tuple[plt.Figure, plt.Axes]:
        """Observed rates with predicted trajectories on a dense grid.

        ``lines`` can contain ``"factual"``, ``"counterfactual"`` and
        ``"deseasonalised"``.
        """
        styles = {
            "factual": ({}, "Predicted"),
            "counterfactual": ({"counterfactual": True}, "Counterfactual"),
            "deseasonalised": ({"deseasonalise": "reference"}, "Deseasonalised"),
        }
        unknown = [line for line in lines if line not in styles]
        if unknown:
            raise ValueError(f"Unknown lines {unknown}, choose from {list(styles)}")

        grid = self.prediction_grid(resolution)
        fig, ax = plt.subplots(figsize=(7, 4))
        plot_observed_rates(
            ax,
            self.data[self.time],
            self.data["rate"],
            self.changepoint,
            years=self.years,
            ylim=ylim,
            title=title,
        )
        for line in lines:
            kwargs, label = styles[line]
            prediction = self.predict(grid=grid, **kwargs)
            ls = "-" if line == "factual" else "--"
            ax.plot(prediction.index, prediction.values, c="r", ls=ls, label=label)
        ax.legend(fontsize=LEGEND_FONT_SIZE, loc="upper left")
        return fig, ax

    # Reporting -----------------------------------------------------------

    def summary(self, round_to: int | None = None) -> None:
        """Print summary of main results and model coefficients.

        :param round_to:
            Number of significant figures to round results to. Defaults to 2.
            Use None to return raw numbers.
        """
        table = rate_ratio_table(self.fit_result)
        print(f"{self.expt_type:=^80}")
        print(f"Formula: {self.formula}")
        print(f"Family: {self.family}")
        print(f"Dispersion: {round_num(self.fit_result.dispersion, round_to)}")
        print(f"Deviance: {round_num(self.fit_result.deviance, round_to)}")
        print("Rate ratios:")
        print(table.apply(lambda col: col.map(lambda v: round_num(v, round_to))))

    def effect_summary(
        self, alpha: float = 0.05, round_to: int | None = 3
    ) -> EffectSummary:
        """Table and prose of the step change and trends on the rate ratio
        scale."""
        effects = [self.step_change(alpha), self.trend(alpha=alpha)]
        if self.has_slope_change:
            effects.append(self.post_trend(alpha=alpha))
        return _summarise_effects(effects, round_to)

    # Diagnostics ---------------------------------------------------------

    def residuals(self, kind: ResidualKind = "deviance") -> pd.Series:
        """Residuals of the fit indexed by time."""
        values = fit_residuals(self.fit_result, kind)
        return pd.Series(
            values, index=pd.Index(self.data[self.time].to_numpy(), name=self.time)
        )

    def diagnostics(
        self,
        lags: int | None = None,
        kind: ResidualKind = "deviance",
        alpha: float = 0.05,
    ) -> ResidualDiagnostics:
        """Autocorrelation of the residuals, warning if it is significant."""
        diag = autocorrelation(self.residuals(kind).to_numpy(), nlags=lags, alpha=alpha)
        if check_autocorrelation(diag):
            logger.warning(
                "Residuals of `%s` are autocorrelated (lag 1 ACF %.3f)",
                self.formula,
                diag.lag1,
            )
        return diag

    def plot_residuals(
        self, kind: ResidualKind = "deviance", ylim: tuple[float, float] | None = None
    ) -> tuple[plt.Figure, plt.Axes]:
        """Residuals against time."""
        resid = self.residuals(kind)
        return plot_residuals(resid.index, resid.to_numpy(), ylim=ylim)

    def plot_diagnostics(
        self, lags: int | None = None, kind: ResidualKind = "deviance"
    ) -> tuple[plt.Figure, np.ndarray]:
        """ACF and PACF plots of the residuals."""
        return plot_acf_pacf(self.residuals(kind).to_numpy(), lags=lags)

    def compare(self, full: "PoissonITS") -> FTestResult:
        """F-test of this model against a richer model it is nested in."""
        return f_test(self, full)
