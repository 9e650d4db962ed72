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
Pipeline steps.
"""

from phits.steps.checks import CheckResiduals, CompareModels
from phits.steps.describe_data import DescribeData
from phits.steps.fit_model import FitModel

SEASONAL_TERMS = "harmonic(month, 2, 12)"


def sicily_tutorial_steps(intervention_start: int = 37) -> list:
    """The steps of the Sicily smoking ban analysis.

    ``intervention_start`` is the first post-ban value of ``time``, on which the
    slope change term of ``model4`` is centred. The default matches the
    bundled data, where the ban starts in January 2005.

    1. Summarise the rates before and after the ban.
    2. ``model1``: Poisson regression with a step change and a linear trend.
    3. ``model2``: the same model allowing for overdispersion.
    4. ``model3``: adds two pairs of harmonic terms for seasonality.
    5. ``model4``: adds a change in slope after the ban.
    6. Residual autocorrelation of models 2 and 3, and an F-test of model 3
       against model 4.
    """
    return [
        DescribeData(),
        FitModel("model1", "aces ~ smokban + time", family="poisson"),
        FitModel("model2", "aces ~ smokban + time", family="quasipoisson"),
        FitModel(
            "model3",
            f"aces ~ smokban + time + {SEASONAL_TERMS}",
            family="quasipoisson",
        ),
        FitModel(
            "model4",
            "aces ~ smokban + time + "
            f"slope_change(smokban, time, {intervention_start}) + "
            f"{SEASONAL_TERMS}",
            family="quasipoisson",
        ),
        CheckResiduals("model2"),
        CheckResiduals("model3"),
        CompareModels("model3", "model4"),
    ]


__all__ = [
    "CheckResiduals",
    "CompareModels",
    "DescribeData",
    "FitModel",
    "sicily_tutorial_steps",
]
