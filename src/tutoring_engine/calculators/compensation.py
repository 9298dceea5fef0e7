"""Obligation-weighted compensation arithmetic.

Every counted lesson earns the per-lesson rate. Each obligation carries a
percentage of that rate; a lesson missing an obligation loses that share.
Summed over a month:

    deduction(o) = gross * w(o)/100 * (required(o) - completed(o)) / required(o)

where required(o) is the lesson count and completed(o) the number of
lessons with that obligation's flag set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence

from tutoring_engine.calculators.types import (
    LessonPay,
    Obligation,
    ObligationFlags,
    ObligationTally,
    ObligationWeights,
)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CompensationResult:
    """Gross, deductions and net for one teacher-month."""

    lessons_count: int
    gross_amount: Decimal
    deductions: dict[Obligation, Decimal]
    tallies: dict[Obligation, ObligationTally]
    weights: ObligationWeights
    total_deductions: Decimal = ZERO
    net_amount: Decimal = ZERO
    lessons: list[LessonPay] = field(default_factory=list)

    @property
    def action_breakdown(self) -> dict[str, dict[str, int]]:
        """{flag: {completed, required}} for each obligation."""
        return {o.breakdown_key: self.tallies[o].to_dict() for o in Obligation}

    @property
    def obligations_info(self) -> dict[str, Any]:
        """Aggregate completion across all four obligation types."""
        completed = sum(t.completed for t in self.tallies.values())
        required = sum(t.required for t in self.tallies.values())
        return {
            "completed": completed,
            "required": required,
            "missing": required - completed,
            "completionRate": round(completed / required, 4) if required else 0,
        }


class CompensationCalculator:
    """Pure calculator over a fixed weights snapshot.

    The weights are read once by the caller per calculation so a single
    run never mixes two configurations.
    """

    def __init__(self, weights: ObligationWeights):
        self.weights = weights

    def calculate(
        self,
        lessons: Sequence[ObligationFlags],
        per_lesson_rate: Decimal,
        lesson_ids: Sequence[Any] | None = None,
    ) -> CompensationResult:
        """Compute the month's figures from the counted lessons' flags."""
        rate = Decimal(per_lesson_rate)
        lessons_count = len(lessons)
        gross = quantize_money(rate * lessons_count)

        tallies: dict[Obligation, ObligationTally] = {}
        deductions: dict[Obligation, Decimal] = {}
        for obligation in Obligation:
            completed = sum(1 for flags in lessons if flags.is_done(obligation))
            tally = ObligationTally(completed=completed, required=lessons_count)
            tallies[obligation] = tally
            deductions[obligation] = self._deduction(gross, obligation, tally)

        total_deductions = sum(deductions.values(), ZERO)
        net = max(ZERO, gross - total_deductions)

        result = CompensationResult(
            lessons_count=lessons_count,
            gross_amount=gross,
            deductions=deductions,
            tallies=tallies,
            weights=self.weights,
            total_deductions=quantize_money(total_deductions),
            net_amount=quantize_money(net),
        )
        if lesson_ids is not None:
            result.lessons = [
                self.lesson_pay(lesson_id, flags, rate)
                for lesson_id, flags in zip(lesson_ids, lessons)
            ]
        return result

    def lesson_pay(self, lesson_id: Any, flags: ObligationFlags, rate: Decimal) -> LessonPay:
        """Earned amount of a single lesson given its flags."""
        missing_percent = sum(
            (self.weights.percent_for(o) for o in Obligation if not flags.is_done(o)),
            0,
        )
        deduction = quantize_money(rate * missing_percent / HUNDRED)
        return LessonPay(
            lesson_id=lesson_id,
            obligations_completed=flags.completed_count,
            obligations_total=len(Obligation),
            base=quantize_money(rate),
            deduction=deduction,
            total=max(ZERO, quantize_money(rate) - deduction),
        )

    def _deduction(
        self, gross: Decimal, obligation: Obligation, tally: ObligationTally
    ) -> Decimal:
        if tally.required == 0:
            return ZERO
        weight = Decimal(self.weights.percent_for(obligation))
        return quantize_money(gross * weight * tally.missing / (HUNDRED * tally.required))
