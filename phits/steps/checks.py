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
CheckResiduals and CompareModels pipeline steps.
"""

from __future__ import annotations

import logging

from phits.pipeline import PipelineContext

logger = logging.getLogger(__name__)


def _require_model(context: PipelineContext, name: str, step: str) -> None:
    if name not in context.planned_models:
        raise ValueError(
            f"{step} refers to model {name!r}, which no earlier FitModel step "
            f"fits. Planned models: {context.planned_models}"
        )


class CheckResiduals:
    """Pipeline step computing the residual autocorrelation of a fitted model.

    Significant autocorrelation produces an
    :class:`~phits.custom_exceptions.AutocorrelationWarning`; the pipeline
    carries on.
    """

    def __init__(
        self, model: str, lags: int | None = None, kind: str = "deviance"
    ) -> None:
        self.model = model
        self.lags = lags
        self.kind = kind

    def validate(self, context: PipelineContext) -> None:
        if self.kind not in ("deviance", "pearson"):
            raise ValueError(f"kind must be 'deviance' or 'pearson', got {self.kind!r}")
        _require_model(context, self.model, "CheckResiduals")

    def run(self, context: PipelineContext) -> PipelineContext:
        diag = context.models[self.model].diagnostics(lags=self.lags, kind=self.kind)
        context.diagnostics[self.model] = diag
        logger.info(
            "%s: lag 1 autocorrelation %.3f, significant lags %s",
            self.model,
            diag.lag1,
            diag.significant_lags,
        )
        return context

    def __repr__(self) -> str:
        return f"CheckResiduals(model={self.model!r})"


class CompareModels:
    """Pipeline step running the F-test of a restricted model against a
    fuller model it is nested in."""

    def __init__(self, restricted: str, full: str) -> None:
        self.restricted = restricted
        self.full = full

    def validate(self, context: PipelineContext) -> None:
        if self.restricted == self.full:
            raise ValueError("Cannot compare a model with itself")
        _require_model(context, self.restricted, "CompareModels")
        _require_model(context, self.full, "CompareModels")

    def run(self, context: PipelineContext) -> PipelineContext:
        result = context.models[self.restricted].compare(context.models[self.full])
        context.comparisons[(self.restricted, self.full)] = result
        logger.info("%s vs %s: %s", self.restricted, self.full, result)
        return context

    def __repr__(self) -> str:
        return f"CompareModels(restricted={self.restricted!r}, full={self.full!r})"
