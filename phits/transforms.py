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
Derived quantities used by the Poisson interrupted time series models.

The functions here can be called directly or from inside a model formula, e.g.

    aces ~ smokban + time + harmonic(month, 2, 12)
    aces ~ smokban + time + slope_change(smokban, time, 37) + harmonic(month, 2, 12)
"""

import numpy as np
import pandas as pd

from phits.custom_exceptions import FittingException

RATE_MULTIPLIER = 10**5
DEFAULT_PERIOD = 12


def harmonic(x, nfreq: int, period: float = DEFAULT_PERIOD) -> pd.DataFrame:
    """Fourier terms for a periodic covariate.

    Returns ``nfreq`` pairs of sine and cosine terms
    ``sin(2 pi k x / period)``, ``cos(2 pi k x / period)`` for ``k = 1..nfreq``.

    Parameters
    ----------
    x : array-like
        The periodic covariate, typically the calendar month.
    nfreq : int
        Number of sine/cosine pairs.
    period : float
        Length of the cycle in units of ``x``.

    Returns
    -------
    pd.DataFrame
        Columns ``sin1, cos1, sin2, cos2, ...``. When ``x`` is a Series its
        index is kept so that patsy can align the terms with the data.

    Examples
    --------
    >>> harmonic([3, 6, 9, 12], 1, 12).columns.tolist()
    ['sin1', 'cos1']
    """
    if int(nfreq) != nfreq or nfreq < 1:
        raise ValueError("nfreq should be a positive integer")
    if period <= 0:
        raise ValueError("period should be positive")
    if nfreq > period / 2:
        raise ValueError(
            f"nfreq={nfreq} is larger than period / 2, the extra terms are not "
            "identifiable"
        )

    index = x.index if isinstance(x, pd.Series) else None
    values = np.asarray(x, dtype=float)
    columns = {}
    for k in range(1, int(nfreq) + 1):
        radians = 2 * np.pi * k * values / period
        columns[f"sin{k}"] = np.sin(radians)
        columns[f"cos{k}"] = np.cos(radians)
    return pd.DataFrame(columns, index=index)


def slope_change(intervention, time, start: float):
    """Interaction between the intervention and time, centred on the start of the
    intervention.

    The term is zero before the intervention and at ``time == start``, so that
    adding it to a model does not change the meaning of the step change
    coefficient.
    """
    return intervention * (time - start)


def log_offset(population) -> np.ndarray:
    """Natural log of the population, to be used as a model offset.

    Raises
    ------
    FittingException
        If any population value is not strictly positive and finite.
    """
    population = np.asarray(population, dtype=float)
    if not np.all(np.isfinite(population)) or np.any(population <= 0):
        raise FittingException(
            "The offset requires strictly positive, finite population values"
        )
    return np.log(population)


def standardised_rate(count, population, per: float = RATE_MULTIPLIER):
    """Events per ``per`` people."""
    return count / population * per


# Names made available to patsy when evaluating model formulas
FORMULA_NAMESPACE = {
    "harmonic": harmonic,
    "slope_change": slope_change,
}
