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
Pipeline orchestration for the interrupted time series workflow.

A ``Pipeline`` chains steps (``DescribeData``, ``FitModel``,
``CheckResiduals``, ``CompareModels``) over one dataset. Every step is
validated before any model is fitted, so that a misconfigured step fails
before any work is done. Stages only move forward: each reads what earlier
steps stored in the shared context and adds its own results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import pandas as pd

from phits.comparison import FTestResult
from phits.diagnostics import ResidualDiagnostics
from phits.experiments.interrupted_time_series import PoissonITS

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Mutable container that accumulates results as pipeline steps execute.

    Attributes
    ----------
    data : pd.DataFrame
        The input dataset. Steps never modify it.
    described : pd.DataFrame or None
        Pre/post summary of the rates, populated by ``DescribeData``.
    models : dict
        Fitted experiments by name, populated by ``FitModel``.
    diagnostics : dict
        Residual diagnostics by model name, populated by ``CheckResiduals``.
    comparisons : dict
        F-test results keyed by ``(restricted, full)`` model names, populated
        by ``CompareModels``.
    """

    data: pd.DataFrame
    described: pd.DataFrame | None = None
    models: dict[str, PoissonITS] = field(default_factory=dict)
    diagnostics: dict[str, ResidualDiagnostics] = field(default_factory=dict)
    comparisons: dict[tuple[str, str], FTestResult] = field(default_factory=dict)

    # Names of models that earlier steps will have fitted by the time a step
    # runs. Filled during validation.
    planned_models: list[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Result returned by :meth:`Pipeline.run`."""

    described: pd.DataFrame | None
    models: dict[str, PoissonITS]
    diagnostics: dict[str, ResidualDiagnostics]
    comparisons: dict[tuple[str, str], FTestResult]

    @classmethod
    def from_context(cls, context: PipelineContext) -> PipelineResult:
        """Build a ``PipelineResult`` from a completed ``PipelineContext``."""
        return cls(
            described=context.described,
            models=dict(context.models),
            diagnostics=dict(context.diagnostics),
            comparisons=dict(context.comparisons),
        )

    def effect_table(self, alpha: float = 0.05) -> pd.DataFrame:
        """Step change and trend rate ratios of every fitted model, one row per
        model and effect."""
        rows = []
        for name, model in self.models.items():
            effects = [model.step_change(alpha), model.trend(alpha=alpha)]
            if model.has_slope_change:
                effects.append(model.post_trend(alpha=alpha))
            for effect in effects:
                rows.append({"model": name, "effect": effect.name, **effect.to_dict()})
        return pd.DataFrame(rows).set_index(["model", "effect"])


@runtime_checkable
class Step(Protocol):
    """Protocol that all pipeline steps must satisfy.

    * ``validate`` -- called *before* any step runs. Should raise on
      configuration errors.
    * ``run`` -- called sequentially. Receives the shared
      ``PipelineContext``, adds to it, and returns it.
    """

    def validate(self, context: PipelineContext) -> None: ...

    def run(self, context: PipelineContext) -> PipelineContext: ...


class Pipeline:
    """Run a sequence of analysis steps over one dataset.

    Parameters
    ----------
    data : pd.DataFrame
        The dataset to analyse.
    steps : list of Step
        Ordered sequence of pipeline steps.

    Examples
    --------
    >>> import phits as ph
    >>> result = ph.Pipeline(
    ...     data=ph.load_data("sicily"),
    ...     steps=ph.sicily_tutorial_steps(),
    ... ).run()
    >>> sorted(result.models)
    ['model1', 'model2', 'model3', 'model4']
    """

    def __init__(self, data: pd.DataFrame, steps: list[Step]) -> None:
        if not isinstance(data, pd.DataFrame):
            raise TypeError(
                f"data must be a pandas DataFrame, got {type(data).__name__}"
            )
        if not steps:
            raise ValueError("steps must be a non-empty list")
        for i, step in enumerate(steps):
            if not isinstance(step, Step):
                raise TypeError(
                    f"Step {i} ({type(step).__name__}) does not satisfy the "
                    f"Step protocol (must implement validate and run)"
                )
        self.data = data
        self.steps = list(steps)

    def run(self) -> PipelineResult:
        """Validate all steps, then execute them in order.

        Returns
        -------
        PipelineResult
            The accumulated results of the pipeline.
        """
        context = PipelineContext(data=self.data)

        for step in self.steps:
            step.validate(context)
        context.planned_models.clear()

        for i, step in enumerate(self.steps, start=1):
            logger.info("Running step %d of %d: %r", i, len(self.steps), step)
            context = step.run(context)

        return PipelineResult.from_context(context)
