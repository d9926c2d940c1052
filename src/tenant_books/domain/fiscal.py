import calendar
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta


def _utc_now() -> datetime:
    return datetime.now(UTC)


class FiscalPeriodStatus(str, Enum):
    OPEN = "open"
    LOCKED = "locked"
    CLOSED = "closed"


@dataclass
class FiscalPeriod:
    calendar_id: UUID
    period_number: int
    name: str
    start_date: date
    end_date: date
    status: FiscalPeriodStatus = FiscalPeriodStatus.OPEN
    id: UUID = field(default_factory=uuid4)
    updated_at: datetime = field(default_factory=_utc_now)

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date

    @property
    def accepts_postings(self) -> bool:
        return self.status == FiscalPeriodStatus.OPEN

    def touch(self) -> None:
        self.updated_at = _utc_now()


@dataclass
class FiscalCalendar:
    entity_id: UUID
    year: int
    start_date: date
    end_date: date
    id: UUID = field(default_factory=uuid4)
    periods: list[FiscalPeriod] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)

    @classmethod
    def monthly(cls, entity_id: UUID, year: int, start_month: int = 1) -> "FiscalCalendar":
        """Build a calendar of twelve monthly periods starting at ``start_month``.

        A fiscal year starting in April 2025 runs April 2025 to March 2026.
        """
        if not 1 <= start_month <= 12:
            raise ValueError(f"start_month must be between 1 and 12, got {start_month}")
        start = date(year, start_month, 1)
        end = start + relativedelta(months=12, days=-1)
        fiscal_calendar = cls(entity_id=entity_id, year=year, start_date=start, end_date=end)
        for index in range(12):
            period_start = start + relativedelta(months=index)
            period_end = period_start + relativedelta(months=1, days=-1)
            fiscal_calendar.periods.append(
                FiscalPeriod(
                    calendar_id=fiscal_calendar.id,
                    period_number=index + 1,
                    name=f"{calendar.month_name[period_start.month]} {period_start.year}",
                    start_date=period_start,
                    end_date=period_end,
                )
            )
        return fiscal_calendar

    def period_for(self, on_date: date) -> FiscalPeriod | None:
        for period in self.periods:
            if period.contains(on_date):
                return period
        return None
