"""Tests for fiscal calendars and period locking."""

from datetime import date

import pytest

from tenant_books.container import ServiceScope
from tenant_books.domain.entities import Entity
from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriodStatus
from tenant_books.exceptions import (
    DuplicateCalendarError,
    FiscalPeriodClosedError,
    InvalidPeriodTransitionError,
)


@pytest.fixture
def calendar_2025(services: ServiceScope, entity: Entity) -> FiscalCalendar:
    return services.fiscal_periods.create_calendar(entity.id, 2025)


class TestCreateCalendar:
    """Tests for calendar generation."""

    def test_twelve_monthly_periods(self, calendar_2025: FiscalCalendar) -> None:
        periods = calendar_2025.periods

        assert len(periods) == 12
        assert periods[0].name == "January 2025"
        assert periods[0].period_number == 1
        assert periods[1].end_date == date(2025, 2, 28)
        assert periods[11].end_date == date(2025, 12, 31)
        assert all(p.status == FiscalPeriodStatus.OPEN for p in periods)

    def test_non_calendar_fiscal_year(self, services: ServiceScope, entity: Entity) -> None:
        fiscal = services.fiscal_periods.create_calendar(entity.id, 2025, start_month=4)

        assert fiscal.start_date == date(2025, 4, 1)
        assert fiscal.end_date == date(2026, 3, 31)
        assert fiscal.periods[-1].name == "March 2026"

    def test_duplicate_year(
        self, services: ServiceScope, entity: Entity, calendar_2025: FiscalCalendar
    ) -> None:
        with pytest.raises(DuplicateCalendarError):
            services.fiscal_periods.create_calendar(entity.id, 2025)

    def test_list_calendars(
        self, services: ServiceScope, entity: Entity, calendar_2025: FiscalCalendar
    ) -> None:
        services.fiscal_periods.create_calendar(entity.id, 2026)

        years = [c.year for c in services.fiscal_periods.list_calendars(entity.id)]
        assert years == [2025, 2026]


class TestPeriodWorkflow:
    """Tests for OPEN -> LOCKED -> CLOSED transitions."""

    def test_lock_then_close(
        self, services: ServiceScope, calendar_2025: FiscalCalendar
    ) -> None:
        january = calendar_2025.periods[0]

        locked = services.fiscal_periods.lock_period(january.id)
        closed = services.fiscal_periods.close_period(january.id)

        assert locked.status == FiscalPeriodStatus.LOCKED
        assert closed.status == FiscalPeriodStatus.CLOSED

    def test_lock_twice(self, services: ServiceScope, calendar_2025: FiscalCalendar) -> None:
        january = calendar_2025.periods[0]
        services.fiscal_periods.lock_period(january.id)

        with pytest.raises(InvalidPeriodTransitionError) as exc_info:
            services.fiscal_periods.lock_period(january.id)
        assert exc_info.value.error_code == "PERIOD_ALREADY_LOCKED"

    def test_close_requires_lock(
        self, services: ServiceScope, calendar_2025: FiscalCalendar
    ) -> None:
        with pytest.raises(InvalidPeriodTransitionError) as exc_info:
            services.fiscal_periods.close_period(calendar_2025.periods[0].id)
        assert exc_info.value.error_code == "PERIOD_NOT_LOCKED"

    def test_close_requires_earlier_periods_closed(
        self, services: ServiceScope, calendar_2025: FiscalCalendar
    ) -> None:
        february = calendar_2025.periods[1]
        services.fiscal_periods.lock_period(february.id)

        with pytest.raises(InvalidPeriodTransitionError) as exc_info:
            services.fiscal_periods.close_period(february.id)
        assert exc_info.value.error_code == "PREVIOUS_PERIODS_NOT_CLOSED"

    def test_reopen(self, services: ServiceScope, calendar_2025: FiscalCalendar) -> None:
        january = calendar_2025.periods[0]
        services.fiscal_periods.lock_period(january.id)

        reopened = services.fiscal_periods.reopen_period(january.id)

        assert reopened.status == FiscalPeriodStatus.OPEN

    def test_reopen_open_period(
        self, services: ServiceScope, calendar_2025: FiscalCalendar
    ) -> None:
        with pytest.raises(InvalidPeriodTransitionError) as exc_info:
            services.fiscal_periods.reopen_period(calendar_2025.periods[0].id)
        assert exc_info.value.error_code == "PERIOD_NOT_CLOSED"


class TestEnsureOpen:
    """Tests for the posting guard."""

    def test_open_period_accepts(
        self, services: ServiceScope, entity: Entity, calendar_2025: FiscalCalendar
    ) -> None:
        services.fiscal_periods.ensure_open(entity.id, date(2025, 6, 15))

    def test_locked_period_rejects(
        self, services: ServiceScope, entity: Entity, calendar_2025: FiscalCalendar
    ) -> None:
        services.fiscal_periods.lock_period(calendar_2025.periods[5].id)

        with pytest.raises(FiscalPeriodClosedError):
            services.fiscal_periods.ensure_open(entity.id, date(2025, 6, 15))

    def test_date_outside_calendars_accepted(
        self, services: ServiceScope, entity: Entity, calendar_2025: FiscalCalendar
    ) -> None:
        services.fiscal_periods.ensure_open(entity.id, date(2030, 1, 1))
        assert services.fiscal_periods.find_period(entity.id, date(2030, 1, 1)) is None
