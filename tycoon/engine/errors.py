"""Errors raised by the evaluation engine.

Every error is a rejection with no side effects: the transaction that raised
it is rolled back and nothing is persisted.
"""

from __future__ import annotations

import typing as t


class EngineError(Exception):
    def __init__(self, message: str, **context: t.Any):
        super().__init__(message)
        self.context = context

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{message} ({details})"


class NotFound(EngineError):
    """A referenced assignment, team or grade does not exist."""


class InsufficientData(EngineError):
    """Too few submitting teams or no eligible evaluators to distribute."""


class EvaluationPhaseActive(EngineError):
    """Redistribution was requested while an evaluation round is underway."""


class InvalidEvaluationCount(EngineError):
    pass


class SelfEvaluationDetected(EngineError):
    """A generated batch would have a team evaluate its own submission."""


class TeamLocked(EngineError):
    """Team membership is frozen once evaluations have been distributed."""


class LedgerError(EngineError):
    """An investment was rejected."""


class TokenAmountOutOfRange(LedgerError):
    pass


class CommentRequired(LedgerError):
    pass


class NotAssigned(LedgerError):
    """The investor holds no evaluation assignment for the team's submission."""


class CapExceeded(LedgerError):
    pass


class BudgetExceeded(LedgerError):
    pass


class DuplicateInvestment(LedgerError):
    pass


class WindowClosed(LedgerError):
    pass
