"""
Season matching and rate resolution for accommodations.

Seasons come in three shapes:
- fixed: start_date/end_date are ISO dates (YYYY-MM-DD), inclusive
- recurring: start_date/end_date are MM-DD, same range every year,
  may wrap the year end (e.g. 11-01 -> 02-28)
- weekday: ``weekdays`` lists days of week, 0=Sunday ... 6=Saturday

When several seasons contain the date, the highest priority wins, then the
shortest period, then the lowest id. Rate lookup never picks an arbitrary
row: it either finds a rate by a documented fallback order or raises.

Seasons and rates are duck-typed: ORM rows and response schemas both work.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from tarification.models.accommodation import MealPlan, SeasonType

logger = logging.getLogger(__name__)

# Leap reference year so that 02-29 is a valid recurring bound
_REFERENCE_YEAR = 2000


class OutOfSeasonError(Exception):
    """No season covers the requested date."""

    def __init__(self, on_date: date, next_season: Any = None):
        self.on_date = on_date
        self.next_season = next_season
        self.message = f"Aucune saison ne couvre le {on_date.isoformat()}"
        if next_season is not None:
            self.message += f" (prochaine saison : {next_season.name}, à partir du {next_season.start_date})"
        super().__init__(self.message)


class NoRateError(Exception):
    """A season was found but no rate matches the room/bed type/meal plan."""

    def __init__(
        self,
        room_category_id: int,
        bed_type: str,
        meal_plan: str,
        season_id: Optional[int] = None,
        available_meal_plans: Optional[List[str]] = None,
    ):
        self.room_category_id = room_category_id
        self.bed_type = bed_type
        self.meal_plan = meal_plan
        self.season_id = season_id
        self.available_meal_plans = available_meal_plans or []
        self.message = f"Aucun tarif {bed_type} en {meal_plan} pour cette chambre"
        if self.available_meal_plans:
            self.message += f" (formules disponibles : {', '.join(self.available_meal_plans)})"
        super().__init__(self.message)


@dataclass
class RateMatch:
    """Result of a rate lookup."""
    rate: Any
    season: Any = None
    # Empty for an exact match, else "default_season" and/or "default_meal_plan"
    fallbacks: List[str] = field(default_factory=list)

    @property
    def season_id(self) -> Optional[int]:
        return self.season.id if self.season is not None else None

    @property
    def fallback(self) -> Optional[str]:
        return ",".join(self.fallbacks) if self.fallbacks else None

    @property
    def is_exact(self) -> bool:
        return not self.fallbacks


# ---------------------------------------------------------------------------
# Season matching
# ---------------------------------------------------------------------------

def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


def _parse_mmdd(value: Any) -> Optional[int]:
    """'12-24' -> 1224."""
    if not value:
        return None
    try:
        month, day = (int(part) for part in str(value).split("-")[-2:])
    except ValueError:
        return None
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return None
    return month * 100 + day


def _mmdd_to_date(mmdd: int, year: int) -> date:
    month, day = divmod(mmdd, 100)
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _python_to_season_weekday(on_date: date) -> int:
    # Python: 0=Monday. Seasons: 0=Sunday.
    return (on_date.weekday() + 1) % 7


def date_matches_season(on_date: date, season: Any) -> bool:
    """Check if a date falls within a season's period."""
    season_type = season.season_type or SeasonType.FIXED

    if season_type == SeasonType.WEEKDAY:
        return _python_to_season_weekday(on_date) in (season.weekdays or [])

    if season_type == SeasonType.RECURRING:
        start = _parse_mmdd(season.start_date)
        end = _parse_mmdd(season.end_date)
        if start is None or end is None:
            return False
        mmdd = on_date.month * 100 + on_date.day
        if start <= end:
            return start <= mmdd <= end
        return mmdd >= start or mmdd <= end

    if season_type == SeasonType.FIXED:
        start = _as_date(season.start_date)
        end = _as_date(season.end_date)
        if start is None or end is None:
            return False
        return start <= on_date <= end

    return False


def season_span_days(season: Any) -> int:
    """Length of the season period in days (weekday seasons count as 1)."""
    season_type = season.season_type or SeasonType.FIXED

    if season_type == SeasonType.WEEKDAY:
        return 1

    if season_type == SeasonType.RECURRING:
        start = _parse_mmdd(season.start_date)
        end = _parse_mmdd(season.end_date)
        if start is None or end is None:
            return 366
        start_day = _mmdd_to_date(start, _REFERENCE_YEAR)
        end_year = _REFERENCE_YEAR if start <= end else _REFERENCE_YEAR + 1
        return (_mmdd_to_date(end, end_year) - start_day).days + 1

    start = _as_date(season.start_date)
    end = _as_date(season.end_date)
    if start is None or end is None:
        return 366
    return (end - start).days + 1


def _season_sort_key(season: Any):
    season_id = season.id if season.id is not None else float("inf")
    return (-(season.priority or 0), season_span_days(season), season_id)


def matching_seasons(seasons: Sequence[Any], on_date: date) -> List[Any]:
    """Active seasons containing the date, best first."""
    matching = [s for s in seasons or [] if s.is_active and date_matches_season(on_date, s)]
    return sorted(matching, key=_season_sort_key)


def resolve_season(seasons: Sequence[Any], on_date: date) -> Optional[Any]:
    """
    Resolve which season applies for a given date.

    Returns None when no active season contains the date.
    """
    matching = matching_seasons(seasons, on_date)
    if len(matching) > 1:
        logger.debug(
            "Overlapping seasons on %s: %s, picked %s",
            on_date, [s.id for s in matching], matching[0].id,
        )
    return matching[0] if matching else None


def next_fixed_season(seasons: Sequence[Any], on_date: date) -> Optional[Any]:
    """The nearest active fixed season starting after the date."""
    upcoming = []
    for season in seasons or []:
        if not season.is_active or (season.season_type or SeasonType.FIXED) != SeasonType.FIXED:
            continue
        start = _as_date(season.start_date)
        if start is not None and start > on_date:
            upcoming.append((start, season.id if season.id is not None else float("inf"), season))
    if not upcoming:
        return None
    return min(upcoming, key=lambda item: (item[0], item[1]))[2]


# ---------------------------------------------------------------------------
# Rate resolution
# ---------------------------------------------------------------------------

def _rate_sort_key(rate: Any):
    return rate.id if rate.id is not None else float("inf")


def _first(rates: List[Any]) -> Optional[Any]:
    return min(rates, key=_rate_sort_key) if rates else None


def match_rate(
    rates: Sequence[Any],
    seasons: Sequence[Any],
    on_date: date,
    room_category_id: int,
    bed_type: str,
    meal_plan: str,
    default_meal_plan: str = MealPlan.BB,
) -> RateMatch:
    """
    Find the rate for a room category, bed type and meal plan on a date.

    Order:
    1. exact (bed_type, meal_plan) in the resolved season
    2. exact (bed_type, meal_plan) in the default rates (no season)
    3. bed_type on the default meal plan, resolved season then default rates

    Raises OutOfSeasonError when the accommodation has seasons and none
    covers the date, NoRateError when nothing matches.
    """
    active_seasons = [s for s in seasons or [] if s.is_active]
    season = resolve_season(active_seasons, on_date)
    if season is None and active_seasons:
        raise OutOfSeasonError(on_date, next_fixed_season(active_seasons, on_date))

    candidates = [
        r for r in rates or []
        if r.is_active and r.room_category_id == room_category_id and r.bed_type == bed_type
    ]
    season_rates = [r for r in candidates if season is not None and r.season_id == season.id]
    default_rates = [r for r in candidates if r.season_id is None]

    tiers = [
        (season_rates, meal_plan, []),
        (default_rates, meal_plan, ["default_season"] if season is not None else []),
    ]
    if meal_plan != default_meal_plan:
        tiers += [
            (season_rates, default_meal_plan, ["default_meal_plan"]),
            (default_rates, default_meal_plan,
             (["default_season"] if season is not None else []) + ["default_meal_plan"]),
        ]

    for tier_rates, tier_meal_plan, fallbacks in tiers:
        rate = _first([r for r in tier_rates if r.meal_plan == tier_meal_plan])
        if rate is not None:
            if fallbacks:
                logger.info(
                    "Rate fallback for room %s %s/%s on %s: %s",
                    room_category_id, bed_type, meal_plan, on_date, fallbacks,
                )
            return RateMatch(rate=rate, season=season, fallbacks=list(fallbacks))

    available = sorted({r.meal_plan for r in season_rates + default_rates})
    raise NoRateError(
        room_category_id=room_category_id,
        bed_type=bed_type,
        meal_plan=meal_plan,
        season_id=season.id if season is not None else None,
        available_meal_plans=available,
    )


def _pick_best_rate(rates: List[Any], season_id: Optional[int]) -> Optional[Any]:
    """Exact season rate first, then the default rate; lowest id breaks ties."""
    if season_id is not None:
        exact = _first([r for r in rates if r.season_id == season_id])
        if exact is not None:
            return exact
    return _first([r for r in rates if r.season_id is None])


def build_rate_map_by_bed_type(
    rates: Sequence[Any],
    season_id: Optional[int],
    room_category_id: int,
) -> Dict[str, Any]:
    """One rate per bed type for a room category, e.g. {"DBL": rate, "SGL": rate}."""
    by_bed_type: Dict[str, List[Any]] = {}
    for rate in rates or []:
        if rate.is_active and rate.room_category_id == room_category_id:
            by_bed_type.setdefault(rate.bed_type, []).append(rate)

    result = {}
    for bed_type, bed_rates in by_bed_type.items():
        best = _pick_best_rate(bed_rates, season_id)
        if best is not None:
            result[bed_type] = best
    return result


def build_rate_map(
    rates: Sequence[Any],
    season_id: Optional[int],
    preferred_bed_type: str = "DBL",
) -> Dict[int, Any]:
    """
    One rate per room category, for price previews in the room picker.

    Prefers the season rate over the default one, and ``preferred_bed_type``
    within the same tier.
    """
    by_room: Dict[int, List[Any]] = {}
    for rate in rates or []:
        if rate.is_active:
            by_room.setdefault(rate.room_category_id, []).append(rate)

    result = {}
    for room_id, room_rates in by_room.items():
        preferred = [r for r in room_rates if r.bed_type == preferred_bed_type]
        best = _pick_best_rate(preferred, season_id) or _pick_best_rate(room_rates, season_id)
        if best is not None:
            result[room_id] = best
    return result


def trip_day_date(trip_start_date: Optional[date], day_number: int) -> Optional[date]:
    """Date of a 1-based trip day."""
    if trip_start_date is None:
        return None
    return trip_start_date + timedelta(days=day_number - 1)


def format_rate(rate: Any) -> Optional[str]:
    """'1 200 THB', or None when there is no rate."""
    if rate is None or not rate.cost:
        return None
    cost = Decimal(str(rate.cost))
    amount = f"{cost:,.0f}" if cost == cost.to_integral_value() else f"{cost:,.2f}"
    amount = amount.replace(",", " ").replace(".", ",")
    return f"{amount} {rate.currency or 'EUR'}"
