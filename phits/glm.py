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
Generalised linear models for event counts.

:func:`fit_glm` is a pure function of (response, design matrix, offset, family)
that fits a log-link Poisson model by iteratively reweighted least squares using
statsmodels. Every model of an interrupted time series analysis shares it and
differs only in the columns of the design matrix.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import PerfectSeparationWarning

from phits.custom_exceptions import FittingException
from phits.utils import round_num

logger = logging.getLogger(__name__)

FAMILIES = ("poisson", "quasipoisson")
Family = Literal["poisson", "quasipoisson"]


@dataclass(frozen=True, eq=False)
class GLMFit:
    """Result of fitting a Poisson or quasi-Poisson model.

    Attributes
    ----------
    family : str
        ``"poisson"`` or ``"quasipoisson"``.
    labels : list of str
        Names of the columns of the design matrix.
    params : np.ndarray
        Coefficients on the log scale.
    bse : np.ndarray
        Standard errors, inflated by ``sqrt(dispersion)`` for quasi-Poisson.
    cov_params : np.ndarray
        Covariance matrix of the coefficients.
    dispersion : float
        One for Poisson, ``pearson_chi2 / df_resid`` for quasi-Poisson.
    deviance, null_deviance, pearson_chi2 : float
        Goodness of fit statistics.
    df_resid, df_model, nobs : int
        Residual and model degrees of freedom and number of observations.
    fitted : np.ndarray
        Fitted means on the response scale.
    linear_predictor : np.ndarray
        Fitted values on the log scale, offset included.
    resid_deviance, resid_pearson : np.ndarray
        Deviance and Pearson residuals.
    llf, aic : float
        Log likelihood and AIC, ``nan`` for quasi-Poisson where no likelihood
        exists.
    converged : bool
        Whether IRLS met the tolerance.
    n_iter : int
        Number of IRLS iterations.
    """

    family: str
    labels: list[str]
    params: np.ndarray
    bse: np.ndarray
    cov_params: np.ndarray
    dispersion: float
    deviance: float
    null_deviance: float
    pearson_chi2: float
    df_resid: int
    df_model: int
    nobs: int
    fitted: np.ndarray
    linear_predictor: np.ndarray
    resid_deviance: np.ndarray
    resid_pearson: np.ndarray
    llf: float
    aic: float
    converged: bool
    n_iter: int

    def _index(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise KeyError(
                f"No coefficient called `{label}`. Available: {self.labels}"
            ) from None

    def coef(self, label: str) -> float:
        """Coefficient on the log scale for the named column."""
        return float(self.params[self._index(label)])

    def std_err(self, label: str) -> float:
        """Standard error of the named coefficient."""
        return float(self.bse[self._index(label)])

    def covariance(self, first: str, second: str) -> float:
        """Covariance between two named coefficients."""
        return float(self.cov_params[self._index(first), self._index(second)])

    def conf_int(self, alpha: float = 0.05) -> pd.DataFrame:
        """Wald confidence intervals on the log scale."""
        z = norm.ppf(1 - alpha / 2)
        return pd.DataFrame(
            {"lower": self.params - z * self.bse, "upper": self.params + z * self.bse},
            index=self.labels,
        )

    def ci_table(self, exp: bool = True, alpha: float = 0.05) -> pd.DataFrame:
        """Coefficient table with Wald statistics and confidence intervals.

        Parameters
        ----------
        exp : bool
            Add the exponentiated estimate and give the interval on the
            exponentiated (rate ratio) scale.
        alpha : float
            One minus the confidence level.

        Returns
        -------
        pd.DataFrame
            Columns ``estimate, std_err, z, p_value`` and, if ``exp``,
            ``exp_estimate``, followed by ``lower, upper``.
        """
        z = self.params / self.bse
        table = pd.DataFrame(
            {
                "estimate": self.params,
                "std_err": self.bse,
                "z": z,
                "p_value": 2 * norm.sf(np.abs(z)),
            },
            index=self.labels,
        )
        ci = self.conf_int(alpha)
        if exp:
            table["exp_estimate"] = np.exp(self.params)
            table["lower"] = np.exp(ci["lower"])
            table["upper"] = np.exp(ci["upper"])
        else:
            table["lower"] = ci["lower"]
            table["upper"] = ci["upper"]
        return table

    def predict(self, X, offset) -> np.ndarray:
        """Predicted means on the response scale for a new design matrix."""
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != len(self.params):
            raise ValueError(
                f"X should have {len(self.params)} columns, got shape {X.shape}"
            )
        return np.exp(X @ self.params + np.asarray(offset, dtype=float))

    def print_coefficients(self, round_to: int | None = None) -> None:
        """Print the coefficients of the model with the corresponding labels."""
        print("Model coefficients:")
        max_label_length = max(len(name) for name in self.labels)
        for name, val, se in zip(self.labels, self.params, self.bse):
            formatted_name = f"{name:<{max_label_length}}"
            formatted_val = f"{round_num(val, round_to):>10}"
            formatted_se = round_num(se, round_to)
            print(f"  {formatted_name}\t{formatted_val} (SE: {formatted_se})")


def fit_glm(
    y,
    X,
    offset,
    family: Family = "poisson",
    labels: Sequence[str] | None = None,
    maxiter: int = 100,
    tol: float = 1e-8,
) -> GLMFit:
    """Fit a log-link count model by iteratively reweighted least squares.

    Parameters
    ----------
    y : array-like
        Non-negative event counts.
    X : array-like
        Design matrix of shape ``(n, p)``, including the intercept column.
    offset : array-like
        Offset on the log scale with its coefficient fixed at one, usually
        ``log(population)``.
    family : {"poisson", "quasipoisson"}
        ``"poisson"`` assumes the variance equals the mean. ``"quasipoisson"``
        keeps the same point estimates and scales the covariance by the
        Pearson dispersion ``sum(pearson_resid**2) / (n - p)``.
    labels : sequence of str, optional
        Names of the design matrix columns.
    maxiter : int
        Maximum number of IRLS iterations.
    tol : float
        Convergence tolerance on the change in deviance.

    Returns
    -------
    GLMFit

    Raises
    ------
    ValueError
        For an unknown family or inconsistent shapes.
    FittingException
        If the offset is not finite, the design matrix is rank deficient, the
        response is all zeros, the fit separates, or IRLS does not converge.
    """
    if family not in FAMILIES:
        raise ValueError(f"family should be one of {FAMILIES}, got {family!r}")

    y = np.asarray(y, dtype=float).ravel()
    X = np.asarray(X, dtype=float)
    offset = np.asarray(offset, dtype=float).ravel()

    if X.ndim != 2 or X.shape[0] != y.shape[0]:
        raise ValueError(
            f"X should be a matrix with {y.shape[0]} rows, got shape {X.shape}"
        )
    if offset.shape != y.shape:
        raise ValueError(f"offset should have {y.shape[0]} values, got {offset.shape}")

    n, p = X.shape
    if labels is None:
        labels = [f"x{i}" for i in range(p)]
    labels = list(labels)
    if len(labels) != p:
        raise ValueError(f"Got {len(labels)} labels for {p} columns")

    if not np.all(np.isfinite(offset)):
        raise FittingException("The offset contains non-finite values")
    if np.any(y < 0):
        raise FittingException("Counts should be non-negative")
    if np.all(y == 0):
        raise FittingException(
            "All counts are zero, the coefficients are not identifiable"
        )

    rank = np.linalg.matrix_rank(X)
    if rank < p:
        raise FittingException(
            f"The design matrix is rank deficient (rank {rank} with {p} columns: "
            f"{labels}). Remove collinear terms, for instance harmonics that "
            "coincide at the sampled points."
        )
    if p >= n:
        raise FittingException(
            f"{p} coefficients cannot be estimated from {n} observations"
        )

    model = sm.GLM(y, X, family=sm.families.Poisson(), offset=offset)
    scale = "X2" if family == "quasipoisson" else None

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", PerfectSeparationWarning)
            result = model.fit(method="IRLS", maxiter=maxiter, tol=tol, scale=scale)
    except PerfectSeparationWarning as e:
        raise FittingException(f"Perfect separation detected: {e}") from e

    n_iter = int(result.fit_history["iteration"])
    if not result.converged:
        raise FittingException(
            f"IRLS did not converge within {maxiter} iterations "
            f"(deviance {result.deviance:.4g})"
        )
    params = np.asarray(result.params)
    if not np.all(np.isfinite(params)):
        raise FittingException("IRLS produced non-finite coefficients")

    quasi = family == "quasipoisson"
    llf = np.nan if quasi else float(result.llf)
    aic = np.nan if quasi else float(result.aic)

    fit = GLMFit(
        family=family,
        labels=labels,
        params=params,
        bse=np.asarray(result.bse),
        cov_params=np.asarray(result.cov_params()),
        dispersion=float(result.scale),
        deviance=float(result.deviance),
        null_deviance=float(result.null_deviance),
        pearson_chi2=float(result.pearson_chi2),
        df_resid=int(round(result.df_resid)),
        df_model=int(round(result.df_model)),
        nobs=int(result.nobs),
        fitted=np.asarray(result.fittedvalues),
        linear_predictor=X @ params + offset,
        resid_deviance=np.asarray(result.resid_deviance),
        resid_pearson=np.asarray(result.resid_pearson),
        llf=llf,
        aic=aic,
        converged=bool(result.converged),
        n_iter=n_iter,
    )
    logger.debug(
        "Fitted %s GLM with %d coefficients in %d iterations: deviance=%.4f, "
        "dispersion=%.4f",
        family,
        p,
        n_iter,
        fit.deviance,
        fit.dispersion,
    )
    return fit
