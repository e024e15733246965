"""Meter arithmetic for dispenser totalizers."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class MeterOutcome:
    sold: float
    rolled_over: bool


def liters_sold(opening: float, closing: float) -> MeterOutcome:
    """Liters dispensed between two readings of the same meter.

    A closing of zero against a non-zero opening means the closing has not
    been entered yet, not that the meter wrapped to zero. When the closing is
    below the opening the counter wrapped at the next power of ten above the
    opening.
    """

    if closing == 0 and opening > 0:
        return MeterOutcome(sold=0.0, rolled_over=False)

    if closing >= opening:
        return MeterOutcome(sold=closing - opening, rolled_over=False)

    digits = math.floor(math.log10(opening)) + 1
    modulus = 10**digits
    return MeterOutcome(sold=(modulus - opening) + closing, rolled_over=True)
