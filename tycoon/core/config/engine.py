"""Policy constants of the distribution, ledger, grading and interest engine."""

from __future__ import annotations

import decimal

import pydantic as p

from tycoon.model import DistributionMode, Tier, TieringPolicy

from .base import BaseSettings


class DistributionSettings(BaseSettings):
    mode: DistributionMode = DistributionMode.Student
    default_evaluations: int = 5
    min_evaluations: int = 1
    max_evaluations: int = 10
    min_submitting_teams: int = 2
    default_window_days: int = 3


class LedgerSettings(BaseSettings):
    token_budget: int = 100
    min_tokens: int = 10
    max_tokens: int = 50
    max_investments: int = 3
    grace_period_minutes: int = 0
    require_comment_when_incomplete: bool = True

    @p.model_validator(mode="after")
    def check_bounds(self) -> LedgerSettings:
        if not 0 < self.min_tokens <= self.max_tokens <= self.token_budget:
            raise ValueError("require 0 < min_tokens <= max_tokens <= token_budget")
        return self


class GradingSettings(BaseSettings):
    tiering: TieringPolicy = TieringPolicy.Absolute
    high_threshold: decimal.Decimal = decimal.Decimal(40)
    median_threshold: decimal.Decimal = decimal.Decimal(25)
    percentages: dict[Tier, int] = {
        Tier.High: 100,
        Tier.Median: 80,
        Tier.Low: 60,
        Tier.Incomplete: 0,
    }

    @p.model_validator(mode="after")
    def check_tables(self) -> GradingSettings:
        if missing := set(Tier) - set(self.percentages):
            raise ValueError(f"no percentage configured for {sorted(t.value for t in missing)}")
        if self.median_threshold > self.high_threshold:
            raise ValueError("median_threshold must not exceed high_threshold")
        return self


class InterestSettings(BaseSettings):
    rates: dict[Tier, decimal.Decimal] = {
        Tier.High: decimal.Decimal("0.20"),
        Tier.Median: decimal.Decimal("0.10"),
        Tier.Low: decimal.Decimal("0.05"),
        Tier.Incomplete: decimal.Decimal("0.00"),
    }
    bonus_divisor: decimal.Decimal = decimal.Decimal(100)
    bonus_cap: decimal.Decimal = decimal.Decimal("0.20")

    @p.model_validator(mode="after")
    def check_rates(self) -> InterestSettings:
        if missing := set(Tier) - set(self.rates):
            raise ValueError(f"no interest rate configured for {sorted(t.value for t in missing)}")
        return self


class EngineSettings(BaseSettings):
    distribution: DistributionSettings = DistributionSettings()
    ledger: LedgerSettings = LedgerSettings()
    grading: GradingSettings = GradingSettings()
    interest: InterestSettings = InterestSettings()
