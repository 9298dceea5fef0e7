"""Compensation calculation."""

from tutoring_engine.calculators.compensation import (
    CompensationCalculator,
    CompensationResult,
    quantize_money,
)
from tutoring_engine.calculators.types import (
    LessonPay,
    Obligation,
    ObligationFlags,
    ObligationTally,
    ObligationWeights,
)

__all__ = [
    "CompensationCalculator",
    "CompensationResult",
    "LessonPay",
    "Obligation",
    "ObligationFlags",
    "ObligationTally",
    "ObligationWeights",
    "quantize_money",
]
