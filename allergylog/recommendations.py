from typing import List

from allergylog.models import Advisory, FoodStat, MonthSummary
from allergylog.stats import CAUTION_RATE, SAFE_MIN_RECORDS, SAFE_RATE

CONSULT_SEVERITY = 8


def build_recommendations(food_stats: List[FoodStat], summary: MonthSummary) -> List[Advisory]:
    """Every rule that applies fires, in a fixed order."""
    advisories: List[Advisory] = []

    caution = [s for s in food_stats if s.reaction_rate > CAUTION_RATE]
    if caution:
        advisories.append(Advisory(
            level="critical",
            kind="caution_foods",
            title="Foods needing caution",
            lines=[
                f"{s.food}: {s.reaction_rate:.0f}% reaction rate (avg severity {s.avg_severity:.1f})"
                for s in caution
            ],
        ))

    safe = [
        s for s in food_stats
        if s.reaction_rate < SAFE_RATE and s.total_records >= SAFE_MIN_RECORDS
    ]
    if safe:
        advisories.append(Advisory(
            level="info",
            kind="safe_foods",
            title="Relatively safe foods",
            lines=[
                f"{s.food}: {s.reaction_rate:.0f}% reaction rate ({s.total_records} exposures)"
                for s in safe
            ],
        ))

    if summary.previous is not None and summary.avg_severity < summary.previous.avg_severity:
        drop = summary.previous.avg_severity - summary.avg_severity
        advisories.append(Advisory(
            level="info",
            kind="improving_trend",
            title="Improving trend",
            lines=[f"Average severity fell by {drop:.1f} points versus last month."],
        ))

    if any(s.max_severity >= CONSULT_SEVERITY for s in food_stats):
        advisories.append(Advisory(
            level="warning",
            kind="consult_specialist",
            title="Seek professional consultation",
            lines=[
                f"A reaction of severity {CONSULT_SEVERITY} or higher was logged this month. "
                "Consider seeing a pediatrician or allergist."
            ],
        ))

    return advisories
