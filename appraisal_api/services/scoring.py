"""
Score aggregation and performance-band classification.

Pure functions, no database access, so they can be unit tested directly.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence

# (lower bound inclusive, band) in descending order
PERFORMANCE_BANDS = (
    (91, "Exceptional"),
    (81, "Excellent"),
    (71, "Very Good"),
    (61, "Good"),
    (51, "Fair"),
)
LOWEST_BAND = "Poor"

RATING_MIN = 1
RATING_MAX = 5
# A 1-5 rating maps onto 0-100 in steps of 20
RATING_TO_PERCENT = 20

SECTION_CAPS = {
    "financial": 50,
    "sales": 50,
    "operational": 35,
    "efficiency": 35,
    "behavioural": 15,
    "behavioral": 15,
    "soft skills": 15,
}
NOTEWORTHY_RATE = Decimal("0.1")
NOTEWORTHY_SECTION_CAP = Decimal("10")
NOTEWORTHY_TOTAL_CAP = Decimal("10")


class ScoringError(ValueError):
    """Raised when a score cannot be computed from the given ratings."""


def round_half_up(value, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ScoringError(f"Rating must be an integer, got {rating!r}")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ScoringError(f"Rating must be between {RATING_MIN} and {RATING_MAX}, got {rating}")
    return rating


def committee_final_score(ratings: Iterable[Optional[int]]) -> int:
    """
    Equal-weight committee score on a 0-100 scale.

    Every present rating contributes rating * 20; unanswered entries (None)
    are skipped. Raises ScoringError when nothing was rated.
    """
    total = 0
    count = 0
    for rating in ratings:
        if rating is None:
            continue
        total += validate_rating(rating) * RATING_TO_PERCENT
        count += 1
    if count == 0:
        raise ScoringError("No committee ratings to score")
    score = int(round_half_up(Decimal(total) / Decimal(count)))
    return max(0, min(100, score))


def performance_band(score: float) -> str:
    for lower_bound, band in PERFORMANCE_BANDS:
        if score >= lower_bound:
            return band
    return LOWEST_BAND


def section_cap(section_name: str) -> Optional[int]:
    name = (section_name or "").lower()
    for keyword, cap in SECTION_CAPS.items():
        if keyword in name:
            return cap
    return None


class WeightedItem:
    __slots__ = ("score", "weight")

    def __init__(self, score: Optional[int], weight: Optional[float] = None):
        self.score = score or 0
        self.weight = weight or 1


def section_score(section_name: str, items: Sequence[WeightedItem]) -> float:
    """
    Percentage of the maximum achievable weighted score, capped per section.
    """
    total = sum(Decimal(str(i.score)) * Decimal(str(i.weight)) for i in items)
    max_possible = sum(Decimal(RATING_MAX) * Decimal(str(i.weight)) for i in items)
    score = (total / max_possible) * 100 if max_possible > 0 else Decimal(0)
    cap = section_cap(section_name)
    if cap is not None:
        score = min(score, Decimal(cap))
    return float(score)


def weighted_average(section_results: Sequence[dict]) -> float:
    """section_results: dicts with 'score' and 'weight'."""
    weighted_sum = Decimal(0)
    total_weight = Decimal(0)
    for s in section_results:
        w = Decimal(str(s["weight"] or 0))
        weighted_sum += Decimal(str(s["score"])) * w
        total_weight += w
    return float(weighted_sum / total_weight) if total_weight > 0 else 0.0


def noteworthy_bonus(section_results: List[dict], noteworthy: Optional[str]) -> float:
    """
    Bonus for sections called out as noteworthy: 10% of the section score,
    at most 10 per section and 10 overall. Marks matched sections in place.
    """
    if not noteworthy:
        return 0.0
    keywords = [k.strip().lower() for k in noteworthy.split(",") if k.strip()]
    total = Decimal(0)
    for s in section_results:
        name = s["section_name"].lower()
        if any(k in name for k in keywords):
            s["is_noteworthy"] = True
            total += min(Decimal(str(s["score"])) * NOTEWORTHY_RATE, NOTEWORTHY_SECTION_CAP)
    return float(min(total, NOTEWORTHY_TOTAL_CAP))
