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
import phits.diagnostics as diagnostics
from phits.comparison import f_test, likelihood_ratio_test
from phits.descriptive import add_rate, describe, period_summary, plot_rates
from phits.glm import GLMFit, fit_glm
from phits.pipeline import Pipeline, PipelineContext, PipelineResult
from phits.plot_utils import plot_trend_comparison
from phits.steps import (
    CheckResiduals,
    CompareModels,
    DescribeData,
    FitModel,
    sicily_tutorial_steps,
)
from phits.transforms import harmonic, slope_change
from phits.version import __version__

from .data import load_data, read_its_csv
from .experiments.interrupted_time_series import PoissonITS

__all__ = [
    "__version__",
    "add_rate",
    "CheckResiduals",
    "CompareModels",
    "describe",
    "DescribeData",
    "diagnostics",
    "f_test",
    "fit_glm",
    "FitModel",
    "GLMFit",
    "harmonic",
    "likelihood_ratio_test",
    "load_data",
    "period_summary",
    "Pipeline",
    "PipelineContext",
    "PipelineResult",
    "plot_rates",
    "plot_trend_comparison",
    "PoissonITS",
    "read_its_csv",
    "sicily_tutorial_steps",
    "slope_change",
]
