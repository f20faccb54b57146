"""Mapping trimmed means onto grade tiers.

One strategy is chosen by configuration and applied to a whole assignment:
absolute thresholds, or relative ranking by thirds across the cohort.
"""

from __future__ import annotations

import abc
import decimal
import math
import typing as t

from tycoon.core.config import GradingSettings
from tycoon.model import TeamID, Tier, TieringPolicy


class TieringStrategy(abc.ABC):
    def __init__(self, config: GradingSettings):
        self.config = config

    @abc.abstractmethod
    def assign(self, means: t.Mapping[TeamID, decimal.Decimal | None]) -> dict[TeamID, Tier]:
        """Tier every team; a mean of None marks the team incomplete."""

    def percentage(self, tier: Tier) -> int:
        return self.config.percentages[tier]


class AbsoluteTiering(TieringStrategy):
    def tier(self, mean: decimal.Decimal) -> Tier:
        if mean >= self.config.high_threshold:
            return Tier.High
        if mean >= self.config.median_threshold:
            return Tier.Median
        return Tier.Low

    def assign(self, means: t.Mapping[TeamID, decimal.Decimal | None]) -> dict[TeamID, Tier]:
        return {team_id: Tier.Incomplete if mean is None else self.tier(mean) for team_id, mean in means.items()}


class RelativeTiering(TieringStrategy):
    """Top third high, middle third median, bottom third low.

    Incomplete teams are not ranked. Equal means are ordered by team key.
    """

    def assign(self, means: t.Mapping[TeamID, decimal.Decimal | None]) -> dict[TeamID, Tier]:
        tiers = {team_id: Tier.Incomplete for team_id, mean in means.items() if mean is None}
        ranked = sorted(
            ((team_id, mean) for team_id, mean in means.items() if mean is not None),
            key=lambda item: (-item[1], item[0]),
        )
        n = len(ranked)
        high, median = math.ceil(n / 3), math.ceil(2 * n / 3)
        for i, (team_id, _) in enumerate(ranked):
            if i < high:
                tiers[team_id] = Tier.High
            elif i < median:
                tiers[team_id] = Tier.Median
            else:
                tiers[team_id] = Tier.Low
        return tiers


def strategy_for(config: GradingSettings) -> TieringStrategy:
    match config.tiering:
        case TieringPolicy.Absolute:
            return AbsoluteTiering(config)
        case TieringPolicy.Relative:
            return RelativeTiering(config)
