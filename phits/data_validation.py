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
Validation of interrupted time series input data
"""

from collections.abc import Iterable

import numpy as np
import pandas as pd

from phits.custom_exceptions import DataException, FormulaException
from phits.utils import _is_contiguous, _is_single_step, _is_variable_dummy_coded

REQUIRED_COLUMNS = ("year", "month", "time", "aces", "smokban", "pop", "stdpop")


def validate_its_data(
    data: pd.DataFrame,
    count: str = "aces",
    time: str = "time",
    intervention: str = "smokban",
    population: str = "stdpop",
    required: Iterable[str] | None = None,
) -> None:
    """Check that a table of monthly observations can be used for a single
    changepoint interrupted time series.

    Parameters
    ----------
    data : pd.DataFrame
        Table of observations, one row per time unit.
    count : str
        Column holding the event counts (the response).
    time : str
        Column holding the elapsed time index.
    intervention : str
        Column holding the 0/1 intervention indicator.
    population : str
        Column holding the (standardised) population used as offset.
    required : iterable of str, optional
        Further columns which must be present.

    Raises
    ------
    DataException
        If any of the checks fail.
    """
    if data is None or len(data) == 0:
        raise DataException("No observations provided")

    needed = [count, time, intervention, population]
    if required is not None:
        needed += [col for col in required if col not in needed]
    missing = [col for col in needed if col not in data.columns]
    if missing:
        raise DataException(
            f"Missing required columns: {missing}. "
            f"Available columns: {list(data.columns)}"
        )

    has_missing = data[needed].isnull().any()
    if has_missing.any():
        raise DataException(
            f"Missing values found in columns: {list(has_missing[has_missing].index)}"
        )

    for col in needed:
        if not pd.api.types.is_numeric_dtype(data[col]):
            raise DataException(f"Column `{col}` should be numeric")

    if (data[population] <= 0).any():
        raise DataException(
            f"All values of `{population}` should be strictly positive, the log "
            "offset is undefined otherwise"
        )

    counts = np.asarray(data[count], dtype=float)
    if (counts < 0).any() or not np.all(np.mod(counts, 1) == 0):
        raise DataException(f"`{count}` should hold non-negative integer counts")

    if not _is_contiguous(data[time]):
        raise DataException(
            f"`{time}` should be strictly increasing in steps of one with no gaps"
        )

    if not _is_variable_dummy_coded(data[intervention]):
        raise DataException(
            f"The intervention variable `{intervention}` should be dummy coded. "
            "Consisting of 0's and 1's only."
        )

    if not _is_single_step(data[intervention]):
        raise DataException(
            f"`{intervention}` should be 0 before a single changepoint and 1 at or "
            "after it"
        )

    n_post = int(data[intervention].sum())
    if n_post == 0 or n_post == len(data):
        raise DataException(
            "Observations are required both before and after the intervention"
        )


class ITSDataValidator:
    """Mixin class for validating the input data and model formula for Poisson
    interrupted time series experiments."""

    def _input_validation(self, data: pd.DataFrame) -> None:
        """Validate the input data and model formula for correctness"""
        if "~" not in self.formula:
            raise FormulaException(
                "The formula should have an outcome on the left hand side, e.g. "
                "`aces ~ smokban + time`"
            )
        if self.intervention not in self.formula:
            raise FormulaException(
                f"A predictor called `{self.intervention}` should be in the formula"
            )
        if self.time not in self.formula:
            raise FormulaException(
                f"A predictor called `{self.time}` should be in the formula"
            )

        outcome = self.formula.split("~")[0].strip()
        uses_season = self.season is not None and self.season in self.formula
        required = [self.season] if uses_season else None
        validate_its_data(
            data,
            count=outcome,
            time=self.time,
            intervention=self.intervention,
            population=self.offset,
            required=required,
        )
