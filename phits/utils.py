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
Utility functions
"""

import numpy as np
import pandas as pd


def _is_variable_dummy_coded(series: pd.Series) -> bool:
    """Check if a data in the provided Series is dummy coded. It should be 0 or 1
    only."""
    return len(set(series).difference(set([0, 1]))) == 0


def _is_single_step(series: pd.Series) -> bool:
    """Check that a dummy coded Series switches from 0 to 1 at most once and never
    switches back."""
    values = np.asarray(series, dtype=float)
    return bool(np.all(np.diff(values) >= 0))


def _is_contiguous(series: pd.Series) -> bool:
    """Check that a Series holds strictly increasing integers with no gaps."""
    values = np.asarray(series, dtype=float)
    if len(values) < 2:
        return True
    return bool(np.all(np.diff(values) == 1))


def round_num(n: float, round_to: int | None) -> str:
    """Return a string representing a number with significant figures.

    Parameters
    ----------
    n : float
        Number to round.
    round_to : int, optional
        Number of significant figures. If None, defaults to 2.

    Returns
    -------
    str
        String representation of the number with specified significant
        figures.
    """
    sig_figs = _format_sig_figs(n, round_to)
    return f"{n:.{sig_figs}g}"


def _format_sig_figs(value: float, default: int | None = None) -> int:
    """Get a default number of significant figures.

    Gives the integer part or `default`, whichever is bigger.

    Examples
    --------
    0.1234 --> 0.12
    1.234  --> 1.2
    12.34  --> 12
    123.4  --> 123
    """
    if default is None:
        default = 2
    if value == 0 or not np.isfinite(value):
        return 1
    return max(int(np.log10(np.abs(value))) + 1, default)
