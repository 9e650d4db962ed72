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
Functions to load example datasets
"""

import logging
import pathlib
from collections.abc import Mapping

import pandas as pd

import phits as ph
from phits.custom_exceptions import DataException
from phits.data_validation import REQUIRED_COLUMNS, validate_its_data

logger = logging.getLogger(__name__)

DATASETS = {
    "sicily": {
        "filename": "sicily.csv",
        "description": (
            "Monthly acute coronary events in Sicily, 2002-2006, smoking ban from "
            "January 2005. The 2002-2004 months follow the published series, the "
            "2005-2006 months are simulated from a fitted seasonal model."
        ),
    },
}


def _get_data_home() -> pathlib.Path:
    """Return the path of the data directory"""
    return pathlib.Path(ph.__file__).parents[1] / "phits" / "data"


def load_data(dataset: str = None) -> pd.DataFrame:
    """Loads the requested dataset and returns a pandas DataFrame.

    The ``"sicily"`` table is only partly the published tutorial data: the
    pre-ban months 2002-2004 follow the published series while the post-ban
    months 2005-2006 are simulated. Estimates differ from the published
    ones. Load the original file with :func:`read_its_csv` to reproduce them.

    :param dataset: The desired dataset to load
    """

    if dataset in DATASETS:
        data_dir = _get_data_home()
        datafile = DATASETS[dataset]
        file_path = data_dir / datafile["filename"]
        return read_its_csv(file_path)
    else:
        raise ValueError(f"Dataset {dataset} not found!")


def read_its_csv(
    path: str | pathlib.Path, columns: Mapping[str, str] | None = None
) -> pd.DataFrame:
    """Read a monthly interrupted time series table from a CSV file.

    The file needs one header row and the columns ``year, month, time, aces,
    smokban, pop, stdpop`` in any order.

    Parameters
    ----------
    path : str or pathlib.Path
        Location of the CSV file.
    columns : mapping, optional
        Renames header names to the expected ones, e.g. ``{"anno": "year"}``
        for files written with locale specific headers.

    Returns
    -------
    pd.DataFrame
        The validated table.

    Raises
    ------
    DataException
        If the file cannot be parsed or the table breaks any of the checks in
        :func:`phits.data_validation.validate_its_data`.
    """
    try:
        data = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataException(f"Could not parse {path}: {e}") from e

    if columns is not None:
        data = data.rename(columns=dict(columns))

    validate_its_data(data, required=REQUIRED_COLUMNS)
    logger.info("Loaded %d observations from %s", len(data), path)
    return data
