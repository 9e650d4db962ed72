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
Comparison of nested count models.
"""

from dataclasses import dataclass

from scipy.stats import chi2, f

from phits.glm import GLMFit


@dataclass(frozen=True)
class FTestResult:
    """Overdispersion adjusted F-test of a restricted model against a fuller one.

    Attributes
    ----------
    statistic : float
        ``(deviance_change / df_num) / dispersion``.
    df_num, df_denom : int
        Numerator (number of extra coefficients) and denominator (residual
        degrees of freedom of the full model) degrees of freedom.
    p_value : float
        Upper tail probability of the F distribution.
    deviance_change : float
        Deviance of the restricted model minus deviance of the full model.
    dispersion : float
        Pearson dispersion of the full model used for scaling.
    """

    statistic: float
    df_num: int
    df_denom: int
    p_value: float
    deviance_change: float
    dispersion: float

    def __str__(self) -> str:
        return (
            f"F = {self.statistic:.4f} on ({self.df_num}, {self.df_denom}) df, "
            f"p = {self.p_value:.4g}"
        )


@dataclass(frozen=True)
class LikelihoodRatioResult:
    """Scaled deviance (likelihood ratio) test of nested models."""

    statistic: float
    df: int
    p_value: float
    deviance_change: float
    dispersion: float

    def __str__(self) -> str:
        return f"Chi2 = {self.statistic:.4f} on {self.df} df, p = {self.p_value:.4g}"


def _as_fit(model) -> GLMFit:
    """Accept a :class:`GLMFit` or anything holding one as ``fit_result``."""
    if isinstance(model, GLMFit):
        return model
    fit = getattr(model, "fit_result", None)
    if isinstance(fit, GLMFit):
        return fit
    raise TypeError(
        f"Expected a GLMFit or a fitted experiment, got {type(model).__name__}"
    )


def _check_nested(restricted: GLMFit, full: GLMFit) -> int:
    """Return the difference in residual degrees of freedom of two nested fits."""
    if restricted.nobs != full.nobs:
        raise ValueError(
            f"Models were fitted to different data ({restricted.nobs} and "
            f"{full.nobs} observations)"
        )
    extra = set(restricted.labels) - set(full.labels)
    if extra:
        raise ValueError(
            "The restricted model is not nested in the full model, terms "
            f"{sorted(extra)} are missing from the full model"
        )
    df_diff = restricted.df_resid - full.df_resid
    if df_diff <= 0:
        raise ValueError("The full model should have more coefficients")
    return df_diff


def f_test(restricted, full) -> FTestResult:
    """F-test for nested Poisson or quasi-Poisson models.

    The change in deviance per extra coefficient is divided by the Pearson
    dispersion of the full model, ``pearson_chi2 / df_resid``, which accounts
    for overdispersion.

    Parameters
    ----------
    restricted : GLMFit or PoissonITS
        The smaller model.
    full : GLMFit or PoissonITS
        The model with the extra terms.

    Returns
    -------
    FTestResult

    Raises
    ------
    ValueError
        If the models are not nested.
    """
    restricted, full = _as_fit(restricted), _as_fit(full)
    df_num = _check_nested(restricted, full)
    deviance_change = restricted.deviance - full.deviance
    dispersion = full.pearson_chi2 / full.df_resid
    statistic = (deviance_change / df_num) / dispersion
    return FTestResult(
        statistic=float(statistic),
        df_num=int(df_num),
        df_denom=int(full.df_resid),
        p_value=float(f.sf(statistic, df_num, full.df_resid)),
        deviance_change=float(deviance_change),
        dispersion=float(dispersion),
    )


def likelihood_ratio_test(restricted, full) -> LikelihoodRatioResult:
    """Chi-squared test on the change in deviance, scaled by the dispersion of
    the full model (one for a Poisson fit)."""
    restricted, full = _as_fit(restricted), _as_fit(full)
    df = _check_nested(restricted, full)
    deviance_change = restricted.deviance - full.deviance
    statistic = deviance_change / full.dispersion
    return LikelihoodRatioResult(
        statistic=float(statistic),
        df=int(df),
        p_value=float(chi2.sf(statistic, df)),
        deviance_change=float(deviance_change),
        dispersion=float(full.dispersion),
    )
