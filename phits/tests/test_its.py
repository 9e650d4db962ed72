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
Tests for the Poisson interrupted time series experiment
"""

import numpy as np
import pandas as pd
import pytest
from matplotlib import pyplot as plt

import phits as ph
from phits.custom_exceptions import AutocorrelationWarning, FormulaException
from phits.reporting import EffectEstimate, EffectSummary
from phits.tests.conftest import SEASONAL_FORMULA, SLOPE_FORMULA

STEP_FORMULA = "aces ~ smokban + time"


@pytest.fixture
def model1(sicily):
    return ph.PoissonITS(sicily, formula=STEP_FORMULA)


@pytest.fixture
def model3(sicily):
    return ph.PoissonITS(sicily, formula=SEASONAL_FORMULA, family="quasipoisson")


@pytest.fixture
def model4(sicily):
    return ph.PoissonITS(sicily, formula=SLOPE_FORMULA, family="quasipoisson")


def test_its_attributes(model1, sicily):
    assert model1.expt_type == "Poisson Interrupted Time Series"
    assert model1.labels == ["Intercept", "smokban", "time"]
    assert model1.changepoint == 36
    assert model1.intervention_start == 37
    assert model1.years == [2002, 2003, 2004, 2005, 2006]
    assert model1.interaction_label is None
    assert not model1.has_slope_change
    np.testing.assert_allclose(
        model1.data["rate"], sicily["aces"] / sicily["stdpop"] * 10**5
    )
    # the input frame is left untouched
    assert "rate" not in sicily.columns


def test_step_change_reduces_admissions(model1):
    step = model1.step_change()
    assert isinstance(step, EffectEstimate)
    assert step.name == "step_change"
    assert step.estimate == pytest.approx(np.exp(model1.fit_result.coef("smokban")))
    assert step.lower < step.estimate < step.upper
    assert step.estimate < 1
    assert step.excludes_one


def test_boolean_intervention(sicily, model1):
    df = sicily.copy()
    df["smokban"] = df["smokban"].astype(bool)
    result = ph.PoissonITS(df, formula=STEP_FORMULA)
    assert result.labels == ["Intercept", "smokban", "time"]
    np.testing.assert_allclose(result.fit_result.params, model1.fit_result.params)
    # the caller's frame keeps its dtype
    assert df["smokban"].dtype == bool

    grid = result.prediction_grid()
    grid["smokban"] = grid["smokban"].astype(bool)
    np.testing.assert_allclose(result.predict(grid), model1.predict())


def test_no_fit_method(model1):
    assert not hasattr(model1, "fit")


def test_quasipoisson_keeps_estimates(sicily, model1):
    model2 = ph.PoissonITS(sicily, formula=STEP_FORMULA, family="quasipoisson")
    np.testing.assert_allclose(
        model2.fit_result.params, model1.fit_result.params, rtol=1e-8
    )
    scale = np.sqrt(model2.fit_result.dispersion)
    np.testing.assert_allclose(
        model2.fit_result.bse, model1.fit_result.bse * scale, rtol=1e-6
    )
    assert model2.step_change().estimate == pytest.approx(
        model1.step_change().estimate
    )


def test_harmonic_labels(model3):
    assert model3.labels == [
        "Intercept",
        "smokban",
        "time",
        "harmonic(month, 2, 12)[0]",
        "harmonic(month, 2, 12)[1]",
        "harmonic(month, 2, 12)[2]",
        "harmonic(month, 2, 12)[3]",
    ]
    assert model3.fit_result.df_resid == 53


def test_trend(model1):
    trend = model1.trend()
    expected = np.exp(12 * model1.fit_result.coef("time"))
    assert trend.estimate == pytest.approx(expected)
    monthly = model1.trend(per=1)
    assert monthly.estimate == pytest.approx(expected ** (1 / 12))
    # no slope change term, so the post-intervention trend is the same
    assert model1.post_trend().estimate == pytest.approx(trend.estimate)
    with pytest.raises(ValueError, match="slope change"):
        model1.slope_change_ratio()


def test_slope_change_effects(model4):
    fit = model4.fit_result
    assert model4.has_slope_change
    assert model4.interaction_label == "slope_change(smokban, time, 37)"

    post = model4.post_trend()
    beta = fit.coef("time") + fit.coef(model4.interaction_label)
    assert post.estimate == pytest.approx(np.exp(12 * beta))
    variance = (
        fit.std_err("time") ** 2
        + fit.std_err(model4.interaction_label) ** 2
        + 2 * fit.covariance("time", model4.interaction_label)
    )
    assert np.log(post.upper) - 12 * beta == pytest.approx(
        1.959964 * 12 * np.sqrt(variance), rel=1e-5
    )
    ratio = model4.slope_change_ratio()
    assert ratio.estimate == pytest.approx(
        np.exp(12 * fit.coef(model4.interaction_label))
    )


def test_uncentred_interaction(sicily):
    """``smokban * time`` is recognised as the slope change term"""
    result = ph.PoissonITS(sicily, formula="aces ~ smokban * time")
    assert result.interaction_label == "smokban:time"
    centred = ph.PoissonITS(
        sicily, formula="aces ~ smokban + time + slope_change(smokban, time, 37)"
    )
    # same model, different parameterisation of the step
    np.testing.assert_allclose(
        result.fit_result.deviance, centred.fit_result.deviance, rtol=1e-8
    )
    assert result.post_trend().estimate == pytest.approx(
        centred.post_trend().estimate
    )


def test_two_interactions_rejected(sicily):
    with pytest.raises(FormulaException, match="at most one"):
        ph.PoissonITS(
            sicily,
            formula="aces ~ smokban * time + slope_change(smokban, time, 37)",
        )


def test_prediction_grid(model3, sicily):
    grid = model3.prediction_grid()
    assert len(grid) == 600
    assert set(grid.columns) == {"time", "month", "smokban", "stdpop"}
    np.testing.assert_allclose(grid["time"].iloc[[0, -1]], [0.1, 60])
    np.testing.assert_allclose(grid["month"].iloc[[0, 9, 119, 120]], [0.1, 1, 12, 0.1])
    assert grid["month"].between(0, 12).all()
    assert grid.loc[grid["time"] <= 36, "smokban"].eq(0).all()
    assert grid.loc[grid["time"] > 36, "smokban"].eq(1).all()
    assert grid["smokban"].sum() == 240
    np.testing.assert_allclose(grid["stdpop"], sicily["stdpop"].mean())

    assert len(model3.prediction_grid(resolution=1)) == 60
    with pytest.raises(ValueError):
        model3.prediction_grid(resolution=0)


def test_predict_at_observations(model3):
    fitted = model3.predict(grid=model3.data)
    assert fitted.index.name == "time"
    np.testing.assert_allclose(
        fitted.to_numpy(),
        model3.fit_result.fitted / model3.data["stdpop"] * 10**5,
        rtol=1e-8,
    )


def test_counterfactual(model1):
    grid = model1.prediction_grid()
    factual = model1.predict(grid=grid)
    counterfactual = model1.predict(grid=grid, counterfactual=True)
    pre = grid["time"].to_numpy() <= 36
    np.testing.assert_allclose(factual[pre], counterfactual[pre])
    # without a slope change the ratio after the intervention is the step change
    np.testing.assert_allclose(
        factual[~pre] / counterfactual[~pre], model1.step_change().estimate
    )
    # the grid passed in is not modified
    assert grid["smokban"].sum() == 240


def test_counterfactual_with_slope_change(model4):
    factual = model4.predict()
    counterfactual = model4.predict(counterfactual=True)
    ratio = (factual / counterfactual).loc[37.0]
    assert ratio == pytest.approx(model4.step_change().estimate)


@pytest.mark.parametrize("deseasonalise", ["reference", "average"])
def test_deseasonalised_predictions_are_log_linear(model3, deseasonalise):
    prediction = model3.predict(deseasonalise=deseasonalise)
    pre = np.log(prediction.to_numpy()[:360])
    np.testing.assert_allclose(
        np.diff(pre), model3.fit_result.coef("time") / 10, rtol=1e-6
    )


def test_deseasonalise_options(model1, model3):
    # reference month June
    june = model3.predict(deseasonalise="reference")
    grid = model3.prediction_grid()
    grid["month"] = 6
    np.testing.assert_allclose(june, model3.predict(grid=grid))

    average = model3.predict(deseasonalise="average")
    assert not np.allclose(june, average)

    # nothing to remove from a model without seasonal terms
    np.testing.assert_allclose(
        model1.predict(deseasonalise="average"), model1.predict()
    )
    with pytest.raises(ValueError, match="deseasonalise"):
        model3.predict(deseasonalise="loess")


def test_get_plot_data(model1):
    plot_data = model1.get_plot_data()
    assert isinstance(plot_data, pd.DataFrame)
    assert set(plot_data.columns) == {
        "time",
        "smokban",
        "rate",
        "fitted",
        "counterfactual",
    }
    pre = plot_data["smokban"] == 0
    np.testing.assert_allclose(
        plot_data.loc[pre, "fitted"], plot_data.loc[pre, "counterfactual"]
    )
    assert (
        plot_data.loc[~pre, "fitted"] < plot_data.loc[~pre, "counterfactual"]
    ).all()


def test_plot(model3):
    fig, ax = model3.plot()
    assert isinstance(fig, plt.Figure)
    assert isinstance(ax, plt.Axes)
    assert len(ax.lines) == 2
    assert len(ax.collections) == 1
    assert len(ax.collections[0].get_offsets()) == 60

    _, ax = model3.plot(lines=("factual", "deseasonalised"), ylim=(120, 300))
    assert ax.get_ylim() == (120, 300)
    assert [text.get_text() for text in ax.get_legend().get_texts()] == [
        "Predicted",
        "Deseasonalised",
    ]
    with pytest.raises(ValueError, match="Unknown lines"):
        model3.plot(lines=("smoothed",))


def test_plot_trend_comparison(model3, model4):
    fig, ax = ph.plot_trend_comparison(
        {"Step-change only": model3, "Step-change + change-in-slope": model4},
        ylim=(120, 300),
    )
    assert isinstance(fig, plt.Figure)
    assert len(ax.lines) == 2
    with pytest.raises(ValueError):
        ph.plot_trend_comparison({})


def test_summary(model3, capsys):
    model3.summary(round_to=3)
    captured = capsys.readouterr().out
    assert "Poisson Interrupted Time Series" in captured
    assert f"Formula: {SEASONAL_FORMULA}" in captured
    assert "quasipoisson" in captured
    assert "rate_ratio" in captured


def test_print_coefficients(model1, capsys):
    model1.print_coefficients()
    assert "smokban" in capsys.readouterr().out


def test_effect_summary(model3, model4):
    summary = model3.effect_summary()
    assert isinstance(summary, EffectSummary)
    assert summary.table.index.tolist() == ["step_change", "trend"]
    assert "rate ratio" in summary.text

    summary = model4.effect_summary(alpha=0.1)
    assert summary.table.index.tolist() == ["step_change", "trend", "post_trend"]
    assert "90% CI" in summary.text


def test_residuals(model3):
    deviance = model3.residuals()
    assert deviance.index.tolist() == list(range(1, 61))
    np.testing.assert_allclose(deviance, model3.fit_result.resid_deviance)
    np.testing.assert_allclose(
        model3.residuals("pearson"), model3.fit_result.resid_pearson
    )
    with pytest.raises(ValueError):
        model3.residuals("anscombe")


def test_diagnostics(model3):
    diag = model3.diagnostics()
    assert diag.nlags == 17
    assert len(diag.pacf) == 18
    assert diag.acf[0] == pytest.approx(1)

    fig, axes = model3.plot_diagnostics()
    assert len(axes) == 2
    fig, ax = model3.plot_residuals(ylim=(-5, 10))
    assert ax.get_ylim() == (-5, 10)


def test_compare(model3, model4):
    result = model3.compare(model4)
    assert result.df_num == 1
    assert result.df_denom == 52
    assert result.statistic >= 0
    assert 0 <= result.p_value <= 1


def test_refit_is_deterministic(sicily, model3):
    again = ph.PoissonITS(sicily, formula=SEASONAL_FORMULA, family="quasipoisson")
    np.testing.assert_array_equal(again.fit_result.params, model3.fit_result.params)
    assert again.fit_result.dispersion == model3.fit_result.dispersion


def test_harmonics_reduce_lag1_autocorrelation(sicily, model3):
    model2 = ph.PoissonITS(sicily, formula=STEP_FORMULA, family="quasipoisson")
    assert abs(model3.residuals().autocorr(1)) < abs(model2.residuals().autocorr(1))


def test_no_significant_slope_change(model3, model4):
    assert model3.compare(model4).p_value > 0.05


def test_quasipoisson_step_change_is_protective(sicily, model3):
    model2 = ph.PoissonITS(sicily, formula=STEP_FORMULA, family="quasipoisson")
    for model in (model2, model3):
        step = model.step_change()
        assert step.estimate < 1
        assert step.upper < 1


def test_harmonics_leave_no_residual_autocorrelation(sicily, model3):
    model2 = ph.PoissonITS(sicily, formula=STEP_FORMULA, family="quasipoisson")
    with pytest.warns(AutocorrelationWarning):
        assert model2.diagnostics().autocorrelated

    diag = model3.diagnostics()
    assert not diag.autocorrelated
    assert diag.significant_lags == []
