"""Percentage-of-max weight prescriptions."""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal

from .db.models import Lift, LiftCategory, User
from .errors import ValidationError

logger = logging.getLogger(__name__)

PLATE_INCREMENT = Decimal(5)

LIFTS_BY_CATEGORY: dict[LiftCategory, tuple[Lift, Lift]] = {
    LiftCategory.UPPER: (Lift.BENCH, Lift.OHP),
    LiftCategory.LOWER: (Lift.SQUAT, Lift.DEADLIFT),
}

_MAX_FIELDS: dict[Lift, str] = {
    Lift.BENCH: "max_bench",
    Lift.OHP: "max_ohp",
    Lift.SQUAT: "max_squat",
    Lift.DEADLIFT: "max_deadlift",
}


def calculate(one_rep_max: float | None, percentage: float) -> int:
    """
    Prescribed weight for ``percentage`` of ``one_rep_max``, rounded half-up to
    the nearest 5. Percentages above 100 are allowed for overload weeks.
    """
    logger.debug("Calculating weight: max=%s percentage=%s", one_rep_max, percentage)
    if not one_rep_max or one_rep_max <= 0:
        raise ValidationError("max not set for this lift")
    if not math.isfinite(one_rep_max):
        raise ValidationError("max must be a finite number")
    if not math.isfinite(percentage):
        raise ValidationError("percentage must be a finite number")
    raw = Decimal(str(one_rep_max)) * Decimal(str(percentage)) / Decimal(100)
    steps = (raw / PLATE_INCREMENT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(steps * PLATE_INCREMENT)


def max_for(user: User, lift: Lift) -> float | None:
    return getattr(user, _MAX_FIELDS[lift])


def weights_for(user: User, category: LiftCategory, percentage: float) -> dict[str, int]:
    """
    Weights for both main lifts of ``category``. Lifts without a max are left out.
    """
    weights: dict[str, int] = {}
    for lift in LIFTS_BY_CATEGORY[category]:
        one_rep_max = max_for(user, lift)
        if not one_rep_max:
            continue
        weights[lift.value.lower()] = calculate(one_rep_max, percentage)
    return weights
