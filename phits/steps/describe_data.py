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
DescribeData pipeline step.
"""

from __future__ import annotations

import logging

from phits.data_validation import validate_its_data
from phits.descriptive import add_rate, period_summary
from phits.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class DescribeData:
    """Pipeline step that validates the data and summarises the standardised
    rates before and after the intervention.

    Parameters
    ----------
    count, population, intervention, time : str
        Column names in the pipeline's data.
    """

    def __init__(
        self,
        count: str = "aces",
        population: str = "stdpop",
        intervention: str = "smokban",
        time: str = "time",
    ) -> None:
        self.count = count
        self.population = population
        self.intervention = intervention
        self.time = time

    def validate(self, context: PipelineContext) -> None:
        """Check the data before anything runs.

        Raises
        ------
        DataException
            If the data cannot be used for an interrupted time series.
        """
        validate_its_data(
            context.data,
            count=self.count,
            time=self.time,
            intervention=self.intervention,
            population=self.population,
        )

    def run(self, context: PipelineContext) -> PipelineContext:
        data = add_rate(context.data, count=self.count, population=self.population)
        context.described = period_summary(data, "rate", self.intervention)
        logger.info(
            "Mean rate %.1f before and %.1f after the intervention",
            context.described.loc["pre", "mean"],
            context.described.loc["post", "mean"],
        )
        return context

    def __repr__(self) -> str:
        return f"DescribeData(count={self.count!r}, population={self.population!r})"
