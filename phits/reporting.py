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
Reporting of rate ratio estimates as tables and prose.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from phits.glm import GLMFit
from phits.utils import round_num


@dataclass
class EffectSummary:
    """Container for effect summary statistics and prose report.

    Attributes
    ----------
    table : pd.DataFrame
        DataFrame containing the rate ratios with confidence intervals and
        p-values
    text : str
        Formatted prose summary of the effect
    """

    table: pd.DataFrame
    text: str


@dataclass(frozen=True)
class EffectEstimate:
    """A multiplicative effect, i.e. an exponentiated linear combination of
    coefficients, with its Wald confidence interval."""

    name: str
    estimate: float
    lower: float
    upper: float
    p_value: float
    alpha: float = 0.05

    @property
    def excludes_one(self) -> bool:
        """True when the confidence interval does not contain one."""
        return bool(self.upper < 1 or self.lower > 1)

    @property
    def percent_change(self) -> float:
        """The effect as a percentage change."""
        return (self.estimate - 1) * 100

    def to_dict(self) -> dict:
        return {
            "estimate": self.estimate,
            "lower": self.lower,
            "upper": self.upper,
            "p_value": self.p_value,
        }


def rate_ratio_table(fit: GLMFit, alpha: float = 0.05) -> pd.DataFrame:
    """Rate ratios with confidence intervals for every coefficient of a fit."""
    table = fit.ci_table(exp=True, alpha=alpha)
    return table[["exp_estimate", "lower", "upper", "p_value"]].rename(
        columns={"exp_estimate": "rate_ratio"}
    )


def _effects_to_table(effects: list[EffectEstimate]) -> pd.DataFrame:
    return pd.DataFrame(
        [effect.to_dict() for effect in effects],
        index=[effect.name for effect in effects],
    )


def _describe_effect(effect: EffectEstimate, what: str, round_to: int | None) -> str:
    level = int(round((1 - effect.alpha) * 100))
    direction = "decrease" if effect.estimate < 1 else "increase"
    ci = f"{round_num(effect.lower, round_to)}, {round_num(effect.upper, round_to)}"
    significance = (
        "excludes" if effect.excludes_one else "includes"
    ) + " no change"
    return (
        f"{what} {round_num(effect.estimate, round_to)} ({level}% CI {ci}), a "
        f"{round_num(abs(effect.percent_change), round_to)}% {direction}; "
        f"the interval {significance} (p = {round_num(effect.p_value, round_to)})."
    )


def _generate_prose(
    step: EffectEstimate,
    trend: EffectEstimate,
    post_trend: EffectEstimate | None = None,
    round_to: int | None = 3,
) -> str:
    """Prose summary of the step change and underlying trend."""
    parts = [
        _describe_effect(
            step, "The intervention was associated with a rate ratio of", round_to
        ),
        _describe_effect(
            trend, "Before the intervention the annual rate ratio was", round_to
        ),
    ]
    if post_trend is not None:
        parts.append(
            _describe_effect(
                post_trend, "After the intervention the annual rate ratio was", round_to
            )
        )
    return " ".join(parts)


def _summarise_effects(
    effects: list[EffectEstimate], round_to: int | None = 3
) -> EffectSummary:
    """Build an :class:`EffectSummary` from the step change, trend and optional
    post-intervention trend, in that order."""
    if len(effects) < 2:
        raise ValueError("At least a step change and a trend are required")
    post_trend = effects[2] if len(effects) > 2 else None
    text = _generate_prose(effects[0], effects[1], post_trend, round_to)
    return EffectSummary(table=_effects_to_table(effects), text=text)
