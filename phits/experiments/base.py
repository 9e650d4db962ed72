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
Base class for interrupted time series designs fitted with count models.
"""

from abc import abstractmethod
from typing import Any

import pandas as pd

from phits.glm import GLMFit
from phits.plot_utils import plot_style
from phits.reporting import EffectSummary


class BaseExperiment:
    """Base class for interrupted time series designs."""

    labels: list[str]
    fit_result: GLMFit
    expt_type: str

    def print_coefficients(self, round_to: int | None = None) -> None:
        """Ask the fitted model to print its coefficients.

        Parameters
        ----------
        round_to : int, optional
            Number of significant figures to round to. Defaults to None,
            in which case 2 significant figures are used.
        """
        self.fit_result.print_coefficients(round_to)

    def plot(self, *args: Any, **kwargs: Any) -> tuple:
        """Plot the model.

        Internally, this function dispatches to `_plot` with the darkgrid
        style applied only while plotting.
        """
        with plot_style():
            return self._plot(*args, **kwargs)

    @abstractmethod
    def _plot(self, *args: Any, **kwargs: Any) -> tuple:
        """Abstract method for plotting the model."""
        raise NotImplementedError("_plot method not yet implemented")

    @abstractmethod
    def get_plot_data(self, *args: Any, **kwargs: Any) -> pd.DataFrame:
        """Abstract method for recovering plot data."""
        raise NotImplementedError("get_plot_data method not yet implemented")

    @abstractmethod
    def effect_summary(self, *args: Any, **kwargs: Any) -> EffectSummary:
        """Abstract method for a decision-ready summary of the effects."""
        raise NotImplementedError("effect_summary method not yet implemented")
