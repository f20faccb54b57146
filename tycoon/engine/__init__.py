import importlib
import sys
import types
import typing as t

from .errors import BudgetExceeded, CapExceeded, CommentRequired, DuplicateInvestment, EngineError, \
    EvaluationPhaseActive, InsufficientData, InvalidEvaluationCount, LedgerError, NotAssigned, NotFound, \
    SelfEvaluationDetected, TeamLocked, TokenAmountOutOfRange, WindowClosed

__all__ = [
    # Errors
    "BudgetExceeded",
    "CapExceeded",
    "CommentRequired",
    "DuplicateInvestment",
    "EngineError",
    "EvaluationPhaseActive",
    "InsufficientData",
    "InvalidEvaluationCount",
    "LedgerError",
    "NotAssigned",
    "NotFound",
    "SelfEvaluationDetected",
    "TeamLocked",
    "TokenAmountOutOfRange",
    "WindowClosed",
    # Engine modules
    "roster",
    "distribution",
    "ledger",
    "tiering",
    "grading",
    "interest",
    "review",
    "report",
]

if t.TYPE_CHECKING:
    from . import distribution, grading, interest, ledger, report, review, roster, tiering


def __getattr__(name: str) -> types.ModuleType:
    if name in __all__:
        module = importlib.import_module(f"{__name__}.{name}")
        setattr(sys.modules[__name__], name, module)
        return module
    raise AttributeError(f"module {__name__} has no attribute {name}")
