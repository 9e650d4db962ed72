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
"""Tests for pipeline infrastructure and the analysis steps."""

from __future__ import annotations

import warnings

import pandas as pd
import pytest

import phits as ph
from phits.comparison import FTestResult
from phits.custom_exceptions import AutocorrelationWarning, DataException
from phits.diagnostics import ResidualDiagnostics
from phits.pipeline import Pipeline, PipelineContext, PipelineResult, Step

# ---------------------------------------------------------------------------
# Mock steps for unit-testing the pipeline orchestrator
# ---------------------------------------------------------------------------


class _MockStep:
    """Minimal Step-protocol implementation that records calls."""

    def __init__(self, name: str = "mock") -> None:
        self.name = name
        self.validated = False
        self.ran = False

    def validate(self, context: PipelineContext) -> None:
        self.validated = True

    def run(self, context: PipelineContext) -> PipelineContext:
        self.ran = True
        return context


class _FailingValidationStep:
    """Step whose validate() always raises."""

    def validate(self, context: PipelineContext) -> None:
        raise ValueError("bad config")

    def run(self, context: PipelineContext) -> PipelineContext:
        return context  # pragma: no cover


# ---------------------------------------------------------------------------
# Pipeline tests
# ---------------------------------------------------------------------------


class TestPipeline:
    def test_empty_steps_raises(self, sicily: pd.DataFrame) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            Pipeline(data=sicily, steps=[])

    def test_non_dataframe_raises(self) -> None:
        with pytest.raises(TypeError, match="DataFrame"):
            Pipeline(data=[1, 2, 3], steps=[_MockStep()])

    def test_invalid_step_raises(self, sicily: pd.DataFrame) -> None:
        with pytest.raises(TypeError, match="Step protocol"):
            Pipeline(data=sicily, steps=[object()])

    def test_mock_step_satisfies_protocol(self) -> None:
        assert isinstance(_MockStep(), Step)

    def test_validation_happens_before_run(self, sicily: pd.DataFrame) -> None:
        first = _MockStep()
        with pytest.raises(ValueError, match="bad config"):
            Pipeline(data=sicily, steps=[first, _FailingValidationStep()]).run()
        assert first.validated
        assert not first.ran

    def test_empty_result(self, sicily: pd.DataFrame) -> None:
        result = Pipeline(data=sicily, steps=[_MockStep()]).run()
        assert isinstance(result, PipelineResult)
        assert result.described is None
        assert result.models == {}


# ---------------------------------------------------------------------------
# Step validation
# ---------------------------------------------------------------------------


class TestStepValidation:
    def test_describe_rejects_bad_data(self, sicily: pd.DataFrame) -> None:
        sicily.loc[4, "stdpop"] = -1
        mock = _MockStep()
        with pytest.raises(DataException):
            Pipeline(data=sicily, steps=[mock, ph.DescribeData()]).run()
        assert not mock.ran

    def test_fit_model_unknown_family(self, sicily: pd.DataFrame) -> None:
        step = ph.FitModel("m", "aces ~ smokban + time", family="negbin")
        with pytest.raises(ValueError, match="family"):
            Pipeline(data=sicily, steps=[step]).run()

    def test_fit_model_rejects_data_kwarg(self, sicily: pd.DataFrame) -> None:
        step = ph.FitModel("m", "aces ~ smokban + time", data=sicily)
        with pytest.raises(ValueError, match="supplied by the Pipeline"):
            Pipeline(data=sicily, steps=[step]).run()

    def test_fit_model_duplicate_name(self, sicily: pd.DataFrame) -> None:
        steps = [
            ph.FitModel("m", "aces ~ smokban + time"),
            ph.FitModel("m", "aces ~ smokban + time", family="quasipoisson"),
        ]
        with pytest.raises(ValueError, match="already fitted"):
            Pipeline(data=sicily, steps=steps).run()

    def test_check_residuals_unknown_model(self, sicily: pd.DataFrame) -> None:
        fit = ph.FitModel("m", "aces ~ smokban + time")
        with pytest.raises(ValueError, match="no earlier FitModel"):
            Pipeline(data=sicily, steps=[fit, ph.CheckResiduals("other")]).run()

    def test_check_residuals_before_fit(self, sicily: pd.DataFrame) -> None:
        steps = [ph.CheckResiduals("m"), ph.FitModel("m", "aces ~ smokban + time")]
        with pytest.raises(ValueError, match="no earlier FitModel"):
            Pipeline(data=sicily, steps=steps).run()

    def test_compare_same_model(self, sicily: pd.DataFrame) -> None:
        fit = ph.FitModel("m", "aces ~ smokban + time")
        with pytest.raises(ValueError, match="itself"):
            Pipeline(data=sicily, steps=[fit, ph.CompareModels("m", "m")]).run()

    def test_repr(self) -> None:
        step = ph.FitModel("m", "aces ~ smokban + time", family="quasipoisson")
        assert repr(step) == (
            "FitModel(name='m', formula='aces ~ smokban + time', "
            "family='quasipoisson')"
        )
        assert repr(ph.CompareModels("a", "b")) == (
            "CompareModels(restricted='a', full='b')"
        )


# ---------------------------------------------------------------------------
# The complete analysis
# ---------------------------------------------------------------------------


@pytest.fixture
def tutorial(sicily: pd.DataFrame) -> PipelineResult:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", AutocorrelationWarning)
        return Pipeline(data=sicily, steps=ph.sicily_tutorial_steps()).run()


class TestSicilyTutorial:
    def test_models(self, tutorial: PipelineResult) -> None:
        assert list(tutorial.models) == ["model1", "model2", "model3", "model4"]
        families = [model.family for model in tutorial.models.values()]
        assert families == ["poisson", "quasipoisson", "quasipoisson", "quasipoisson"]
        assert tutorial.models["model4"].has_slope_change
        assert not tutorial.models["model3"].has_slope_change

    def test_described(self, tutorial: PipelineResult, sicily: pd.DataFrame) -> None:
        assert tutorial.described.index.tolist() == ["pre", "post"]
        pre = sicily[sicily["smokban"] == 0]
        assert tutorial.described.loc["pre", "mean"] == pytest.approx(
            (pre["aces"] / pre["stdpop"] * 10**5).mean()
        )
        # the input data are left as they were
        assert "rate" not in sicily.columns

    def test_diagnostics(self, tutorial: PipelineResult) -> None:
        assert set(tutorial.diagnostics) == {"model2", "model3"}
        assert all(
            isinstance(diag, ResidualDiagnostics)
            for diag in tutorial.diagnostics.values()
        )

    def test_comparison(self, tutorial: PipelineResult) -> None:
        comparison = tutorial.comparisons[("model3", "model4")]
        assert isinstance(comparison, FTestResult)
        expected = ph.f_test(tutorial.models["model3"], tutorial.models["model4"])
        assert comparison == expected

    def test_effect_table(self, tutorial: PipelineResult) -> None:
        table = tutorial.effect_table()
        assert table.index.names == ["model", "effect"]
        assert len(table) == 3 + 2 + 2 + 2
        assert ("model4", "post_trend") in table.index
        assert table.loc[("model1", "step_change"), "estimate"] < 1

    def test_step_change_consistent(self, tutorial: PipelineResult) -> None:
        """Poisson and quasi-Poisson agree on the point estimate"""
        model1, model2 = tutorial.models["model1"], tutorial.models["model2"]
        assert model1.step_change().estimate == pytest.approx(
            model2.step_change().estimate
        )

    def test_slope_change_centred_on_first_post_month(
        self, tutorial: PipelineResult
    ) -> None:
        model4 = tutorial.models["model4"]
        assert model4.interaction_label == "slope_change(smokban, time, 37)"
        assert model4.intervention_start == 37


def test_tutorial_steps_follow_intervention_start() -> None:
    steps = ph.sicily_tutorial_steps(intervention_start=25)
    formulas = {step.name: step.formula for step in steps if hasattr(step, "formula")}
    assert "slope_change(smokban, time, 25)" in formulas["model4"]
    assert "slope_change" not in formulas["model3"]
