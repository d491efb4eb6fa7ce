"""Monthly risk statistics over the record log.

Everything here is a pure function of the records passed in; results are
rebuilt on every call instead of cached, which assumes family-sized logs.

Month-level ``avg_severity`` averages over *all* records in the month, with
non-reactions counting as severity 0, not over reactions only.  Per-food and
per-day averages use reactions only.  Severity values are taken as stored:
nothing is clamped or rejected here.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from allergylog.models import DayBucket, FoodStat, MonthSummary, PeriodTotals, Record

CAUTION_RATE = 70
SAFE_RATE = 20
SAFE_MIN_RECORDS = 3


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    start = date(year, month, 1)
    end = start + relativedelta(months=1) - timedelta(days=1)
    return start, end


def previous_month(year: int, month: int) -> Tuple[int, int]:
    prev = date(year, month, 1) - relativedelta(months=1)
    return prev.year, prev.month


def parse_month(value: str, today: Optional[date] = None) -> Tuple[int, int]:
    """Accept '2024-03', '2024/3', 'March 2024' and the like."""
    today = today or date.today()
    parsed = dateparser.parse(value, default=datetime(today.year, today.month, 1))
    return parsed.year, parsed.month


def records_in(records: Iterable[Record], start: date, end: date) -> List[Record]:
    return [r for r in records if start <= r.date <= end]


def build_food_stats(records: Iterable[Record]) -> List[FoodStat]:
    """One stat per distinct food, in first-seen order."""
    stats: Dict[str, FoodStat] = {}
    for r in records:
        if not r.food:
            continue
        stat = stats.get(r.food)
        if stat is None:
            stat = stats[r.food] = FoodStat(food=r.food)
        stat.total_records += 1
        if r.is_reaction:
            severity = r.severity or 0
            stat.total_reactions += 1
            stat.severity_sum += severity
            stat.max_severity = max(stat.max_severity, severity)
            if r.symptom not in stat.symptoms:
                stat.symptoms.append(r.symptom)
    return list(stats.values())


def rank_food_stats(stats: List[FoodStat]) -> List[FoodStat]:
    # sorted() is stable, so equal keys keep first-seen order
    return sorted(stats, key=lambda s: (-s.reaction_rate, -s.total_reactions))


def period_totals(records: List[Record]) -> PeriodTotals:
    reactions = [r for r in records if r.is_reaction]
    severity_total = sum(r.severity or 0 for r in reactions)
    return PeriodTotals(
        total_records=len(records),
        total_reactions=len(reactions),
        avg_severity=severity_total / len(records) if records else 0.0,
    )


def summarize(current: List[Record], previous: List[Record]) -> MonthSummary:
    summary = MonthSummary(current=period_totals(current))
    if previous:
        prev = period_totals(previous)
        summary.previous = prev
        summary.reaction_delta = summary.current.total_reactions - prev.total_reactions
        summary.severity_delta = summary.current.avg_severity - prev.avg_severity
    return summary


class DailyTrend:
    """Per-day reaction buckets for one month, recomputed on each iteration."""

    def __init__(self, year: int, month: int, records: Iterable[Record] = ()):
        self.start, self.end = month_bounds(year, month)
        self._records = tuple(records_in(records, self.start, self.end))

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __iter__(self) -> Iterator[DayBucket]:
        by_day = defaultdict(list)
        for r in self._records:
            if r.is_reaction:
                by_day[r.date].append(r.severity or 0)
        for i in range(len(self)):
            day = self.start + timedelta(days=i)
            severities = by_day.get(day, [])
            yield DayBucket(
                date=day,
                reaction_count=len(severities),
                avg_severity=sum(severities) / len(severities) if severities else 0.0,
            )

    def __eq__(self, other) -> bool:
        if not isinstance(other, DailyTrend):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        return f"DailyTrend({self.start.isoformat()}..{self.end.isoformat()})"


@dataclass(frozen=True)
class MonthlyStats:
    year: int
    month: int
    food_stats: List[FoodStat]
    summary: MonthSummary
    daily_trend: DailyTrend


def compute_monthly_stats(records: Iterable[Record], year: int, month: int) -> MonthlyStats:
    records = list(records)
    start, end = month_bounds(year, month)
    prev_start, prev_end = month_bounds(*previous_month(year, month))
    current = records_in(records, start, end)
    previous = records_in(records, prev_start, prev_end)
    return MonthlyStats(
        year=year,
        month=month,
        food_stats=rank_food_stats(build_food_stats(current)),
        summary=summarize(current, previous),
        daily_trend=DailyTrend(year, month, current),
    )

# --- Classification ---

def classify_food(stat: FoodStat) -> Optional[str]:
    if stat.reaction_rate > CAUTION_RATE:
        return "needs_caution"
    if stat.reaction_rate < SAFE_RATE and stat.total_records >= SAFE_MIN_RECORDS:
        return "relatively_safe"
    return None


def severity_band(severity: float) -> str:
    if severity <= 3:
        return "mild"
    if severity <= 6:
        return "moderate"
    return "severe"
