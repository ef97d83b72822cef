"""
SAT reporting period calculator (17-17 cycle).

The authority does not report by calendar month. A period labelled
month M of year Y covers day 17 of month M-1 (00:00) through day 16
of month M (end of day), in the authority's local time zone. The
filing is due on day 17 of month M+1.

Pure and stateless: no database access.
"""
from dataclasses import dataclass
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

from dealer_aml.core.config import settings
from dealer_aml.core.exceptions import ValidationError

MONTH_NAMES_ES = [
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
]

MIN_YEAR = 2020
MAX_YEAR = 2100


@dataclass(frozen=True)
class SatPeriod:
    """A reporting window. start/end are aware datetimes in the SAT zone."""

    year: int
    month: int
    start: datetime
    end: datetime
    reported_month: str  # YYYYMM
    display_name: str  # e.g. "Enero 2024"


def sat_timezone() -> ZoneInfo:
    return ZoneInfo(settings.SAT_TIMEZONE)


def _validate(year: int, month: int) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def reported_month_label(year: int, month: int) -> str:
    return f"{year}{month:02d}"


def display_name(year: int, month: int) -> str:
    return f"{MONTH_NAMES_ES[month - 1]} {year}"


def period_for(year: int, month: int) -> SatPeriod:
    """Return the 17-17 window labelled (year, month).

    January rolls the start back into December of the previous year.
    """
    _validate(year, month)
    tz = sat_timezone()
    start_year, start_month = _shift_month(year, month, -1)
    start = datetime(start_year, start_month, settings.SAT_PERIOD_START_DAY, tzinfo=tz)
    end = datetime.combine(
        datetime(year, month, settings.SAT_PERIOD_END_DAY).date(),
        time.max,
        tzinfo=tz,
    )
    return SatPeriod(
        year=year,
        month=month,
        start=start,
        end=end,
        reported_month=reported_month_label(year, month),
        display_name=display_name(year, month),
    )


def deadline_for(year: int, month: int) -> datetime:
    """Submission deadline: end of day 17 of the month after the reported month."""
    _validate(year, month)
    deadline_year, deadline_month = _shift_month(year, month, 1)
    return datetime.combine(
        datetime(deadline_year, deadline_month, settings.SAT_DEADLINE_DAY).date(),
        time.max,
        tzinfo=sat_timezone(),
    )


def period_containing(moment: datetime) -> tuple[int, int]:
    """Return the (year, month) label of the period a timestamp falls into."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(sat_timezone())
    if local.day > settings.SAT_PERIOD_END_DAY:
        return _shift_month(local.year, local.month, 1)
    return local.year, local.month


def default_deadline_for(moment: datetime) -> datetime:
    """Deadline of the period a timestamp falls into."""
    year, month = period_containing(moment)
    return deadline_for(year, month)


def candidate_months(now: datetime | None = None, count: int | None = None) -> list[tuple[int, int]]:
    """
    Periods a user may create a notice for, newest first.

    Past day 16 any alert raised today already belongs to next month's
    window, so the list starts one month ahead instead of at the
    current calendar month.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(sat_timezone())
    count = count if count is not None else settings.SAT_AVAILABLE_MONTHS
    start_offset = -1 if local.day > settings.SAT_PERIOD_END_DAY else 0

    months: list[tuple[int, int]] = []
    for i in range(start_offset, count):
        months.append(_shift_month(local.year, local.month, -i))
    return months


def localize(value: datetime | None) -> datetime | None:
    """Read an offset-less timestamp as SAT local time."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=sat_timezone())
