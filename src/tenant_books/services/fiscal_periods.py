"""Fiscal calendars and the OPEN -> LOCKED -> CLOSED period workflow."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriod, FiscalPeriodStatus
from tenant_books.domain.tenancy import TenantContext
from tenant_books.exceptions import (
    DuplicateCalendarError,
    FiscalPeriodClosedError,
    InvalidPeriodTransitionError,
    RecordNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import EntityRepository, FiscalCalendarRepository
from tenant_books.services.audit import AuditService
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


class FiscalPeriodService:
    def __init__(
        self,
        calendar_repo: FiscalCalendarRepository,
        entity_repo: EntityRepository,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._calendar_repo = calendar_repo
        self._entity_repo = entity_repo
        self._audit = audit
        self._context = context

    def create_calendar(
        self, entity_id: UUID, year: int, start_month: int | None = None
    ) -> FiscalCalendar:
        """Create twelve monthly periods for ``year``.

        Args:
            entity_id: Entity the calendar belongs to
            year: Calendar year in which the fiscal year starts
            start_month: First month, defaults to the entity's fiscal_year_start

        Raises:
            DuplicateCalendarError: If the entity already has a calendar for ``year``
        """
        require_write(self._context, "create_fiscal_calendar")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        if self._calendar_repo.get_by_year(entity_id, year) is not None:
            raise DuplicateCalendarError(entity_id, year)

        fiscal_calendar = FiscalCalendar.monthly(
            entity_id, year, start_month or entity.fiscal_year_start
        )
        self._calendar_repo.add(fiscal_calendar)
        self._audit.log_create(
            "FiscalCalendar",
            fiscal_calendar.id,
            {
                "year": year,
                "start_date": fiscal_calendar.start_date.isoformat(),
                "end_date": fiscal_calendar.end_date.isoformat(),
                "period_count": len(fiscal_calendar.periods),
            },
            entity_id=entity_id,
        )
        logger.info("fiscal_calendar_created", entity_id=str(entity_id), year=year)
        return fiscal_calendar

    def get_calendar(self, calendar_id: UUID) -> FiscalCalendar:
        fiscal_calendar = self._calendar_repo.get(calendar_id)
        if fiscal_calendar is None:
            raise RecordNotFoundError("calendar", calendar_id)
        entity = self._entity_repo.get(fiscal_calendar.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("calendar", calendar_id)
        return fiscal_calendar

    def list_calendars(self, entity_id: UUID) -> list[FiscalCalendar]:
        require_entity(self._entity_repo, self._context, entity_id)
        return list(self._calendar_repo.list_by_entity(entity_id))

    def lock_period(self, period_id: UUID) -> FiscalPeriod:
        require_write(self._context, "lock_fiscal_period")
        period, fiscal_calendar = self._load_period(period_id)
        if period.status == FiscalPeriodStatus.LOCKED:
            raise InvalidPeriodTransitionError(
                "PERIOD_ALREADY_LOCKED", f"{period.name} is already locked", period.id
            )
        if period.status == FiscalPeriodStatus.CLOSED:
            raise InvalidPeriodTransitionError(
                "CANNOT_LOCK_CLOSED_PERIOD", f"{period.name} is closed", period.id
            )
        return self._transition(period, fiscal_calendar, FiscalPeriodStatus.LOCKED)

    def close_period(self, period_id: UUID) -> FiscalPeriod:
        """Close a locked period. Every earlier period of the calendar must be closed."""
        require_write(self._context, "close_fiscal_period")
        period, fiscal_calendar = self._load_period(period_id)
        if period.status == FiscalPeriodStatus.CLOSED:
            raise InvalidPeriodTransitionError(
                "PERIOD_ALREADY_CLOSED", f"{period.name} is already closed", period.id
            )
        if period.status == FiscalPeriodStatus.OPEN:
            raise InvalidPeriodTransitionError(
                "PERIOD_NOT_LOCKED",
                f"{period.name} must be locked before it can be closed",
                period.id,
            )
        still_open = [
            p.name
            for p in fiscal_calendar.periods
            if p.period_number < period.period_number
            and p.status != FiscalPeriodStatus.CLOSED
        ]
        if still_open:
            raise InvalidPeriodTransitionError(
                "PREVIOUS_PERIODS_NOT_CLOSED",
                "Earlier periods must be closed first: " + ", ".join(still_open),
                period.id,
            )
        return self._transition(period, fiscal_calendar, FiscalPeriodStatus.CLOSED)

    def reopen_period(self, period_id: UUID) -> FiscalPeriod:
        require_write(self._context, "reopen_fiscal_period")
        period, fiscal_calendar = self._load_period(period_id)
        if period.status == FiscalPeriodStatus.OPEN:
            raise InvalidPeriodTransitionError(
                "PERIOD_NOT_CLOSED", f"{period.name} is already open", period.id
            )
        return self._transition(period, fiscal_calendar, FiscalPeriodStatus.OPEN)

    def find_period(self, entity_id: UUID, on_date: date) -> FiscalPeriod | None:
        return self._calendar_repo.find_period(entity_id, on_date)

    def ensure_open(self, entity_id: UUID, on_date: date) -> None:
        """Raise FiscalPeriodClosedError if a locked or closed period covers ``on_date``.

        Dates outside every calendar are accepted.
        """
        period = self._calendar_repo.find_period(entity_id, on_date)
        if period is not None and not period.accepts_postings:
            raise FiscalPeriodClosedError(period.id, period.name, period.status.value)

    def _load_period(self, period_id: UUID) -> tuple[FiscalPeriod, FiscalCalendar]:
        period = self._calendar_repo.get_period(period_id)
        if period is None:
            raise RecordNotFoundError("period", period_id)
        try:
            fiscal_calendar = self.get_calendar(period.calendar_id)
        except RecordNotFoundError:
            raise RecordNotFoundError("period", period_id) from None
        return period, fiscal_calendar

    def _transition(
        self,
        period: FiscalPeriod,
        fiscal_calendar: FiscalCalendar,
        target: FiscalPeriodStatus,
    ) -> FiscalPeriod:
        before = period.status
        period.status = target
        period.touch()
        self._calendar_repo.update_period(period)
        self._audit.log_update(
            "FiscalPeriod",
            period.id,
            {"status": before.value},
            {"status": target.value},
            entity_id=fiscal_calendar.entity_id,
        )
        logger.info(
            "fiscal_period_transitioned",
            period_id=str(period.id),
            period=period.name,
            from_status=before.value,
            to_status=target.value,
        )
        return period
