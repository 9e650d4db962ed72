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
FitModel pipeline step.

Wraps experiment construction as a deferred configuration object so that
the pipeline can validate all steps before any model is fitted.
"""

from __future__ import annotations

import logging
from typing import Any

from phits.experiments.interrupted_time_series import PoissonITS
from phits.glm import FAMILIES, Family
from phits.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class FitModel:
    """Pipeline step that fits a :class:`~phits.PoissonITS` and stores it in
    the context under ``name``.

    Parameters
    ----------
    name : str
        Key of the fitted model in ``context.models``.
    formula : str
        Model formula.
    family : {"poisson", "quasipoisson"}
        Count model family.
    **kwargs
        Further keyword arguments forwarded to :class:`~phits.PoissonITS`.
        The ``data`` argument is supplied by the pipeline and must *not* be
        included here.
    """

    def __init__(
        self, name: str, formula: str, family: Family = "poisson", **kwargs: Any
    ) -> None:
        self.name = name
        self.formula = formula
        self.family = family
        self.kwargs = kwargs

    def validate(self, context: PipelineContext) -> None:
        """Check that the step is properly configured.

        Raises
        ------
        ValueError
            If the family is unknown, ``data`` is passed in kwargs, or another
            step already fits a model with the same name.
        """
        if self.family not in FAMILIES:
            raise ValueError(f"family must be one of {FAMILIES}, got {self.family!r}")
        if "data" in self.kwargs:
            raise ValueError(
                "Do not pass 'data' to FitModel; it is supplied by the Pipeline."
            )
        if "~" not in self.formula:
            raise ValueError(f"Invalid formula {self.formula!r}")
        if self.name in context.planned_models:
            raise ValueError(f"A model called {self.name!r} is already fitted")
        context.planned_models.append(self.name)

    def run(self, context: PipelineContext) -> PipelineContext:
        logger.info("Fitting %s: %s (%s)", self.name, self.formula, self.family)
        context.models[self.name] = PoissonITS(
            context.data, formula=self.formula, family=self.family, **self.kwargs
        )
        return context

    def __repr__(self) -> str:
        kwarg_str = "".join(f", {k}={v!r}" for k, v in self.kwargs.items())
        return (
            f"FitModel(name={self.name!r}, formula={self.formula!r}, "
            f"family={self.family!r}{kwarg_str})"
        )
