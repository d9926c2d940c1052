"""Fixed asset register and the monthly depreciation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.assets import (
    AssetStatus,
    DepreciationEntry,
    DepreciationMethod,
    FixedAsset,
    first_of_month,
)
from tenant_books.domain.journal import JournalLine, SourceType
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Money
from tenant_books.exceptions import (
    AssetDisposedError,
    CrossEntityReferenceError,
    RecordNotFoundError,
    ValidationError,
)
from tenant_books.logging_config import LogContext, get_logger
from tenant_books.repositories.interfaces import (
    EntityRepository,
    FixedAssetRepository,
    GLAccountRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


@dataclass
class DisposalResult:
    asset: FixedAsset
    net_book_value: Decimal
    gain_loss: Decimal


@dataclass
class DepreciationRunResult:
    period_date: date
    processed: int = 0
    skipped: int = 0
    entries: list[DepreciationEntry] = field(default_factory=list)


class AssetService:
    def __init__(
        self,
        database: SQLiteDatabase,
        asset_repo: FixedAssetRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        journal: JournalServiceImpl,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._asset_repo = asset_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._journal = journal
        self._audit = audit
        self._context = context

    def capitalize_asset(
        self,
        entity_id: UUID,
        name: str,
        cost: Decimal,
        useful_life_months: int,
        acquired_date: date,
        salvage_value: Decimal = Decimal("0"),
        depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        category: str = "",
        asset_gl_account_id: UUID | None = None,
        depreciation_expense_gl_account_id: UUID | None = None,
        accumulated_depreciation_gl_account_id: UUID | None = None,
    ) -> FixedAsset:
        require_write(self._context, "capitalize_asset")
        require_entity(self._entity_repo, self._context, entity_id)
        for gl_account_id in (
            asset_gl_account_id,
            depreciation_expense_gl_account_id,
            accumulated_depreciation_gl_account_id,
        ):
            if gl_account_id is not None:
                self._check_gl_account(gl_account_id, entity_id)
        if cost <= 0:
            raise ValidationError("Asset cost must be positive", context={"cost": str(cost)})
        try:
            asset = FixedAsset(
                entity_id=entity_id,
                name=name,
                cost=cost,
                useful_life_months=useful_life_months,
                acquired_date=acquired_date,
                salvage_value=salvage_value,
                depreciation_method=depreciation_method,
                category=category,
                asset_gl_account_id=asset_gl_account_id,
                depreciation_expense_gl_account_id=depreciation_expense_gl_account_id,
                accumulated_depreciation_gl_account_id=accumulated_depreciation_gl_account_id,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        self._asset_repo.add(asset)
        self._audit.log_create(
            "FixedAsset",
            asset.id,
            snapshot(asset, "name", "cost", "category"),
            entity_id=entity_id,
        )
        logger.info("asset_capitalized", asset_id=str(asset.id), cost=str(cost))
        return asset

    def get_asset(self, asset_id: UUID) -> FixedAsset:
        asset = self._asset_repo.get(asset_id)
        if asset is None:
            raise RecordNotFoundError("asset", asset_id)
        entity = self._entity_repo.get(asset.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("asset", asset_id)
        return asset

    def list_assets(
        self, entity_id: UUID, status: AssetStatus | None = None
    ) -> list[FixedAsset]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._asset_repo.list_by_entity(entity_id, status)

    def list_depreciation(self, asset_id: UUID) -> list[DepreciationEntry]:
        asset = self.get_asset(asset_id)
        return self._asset_repo.list_depreciation_entries(asset.id)

    def dispose_asset(
        self, asset_id: UUID, disposed_date: date, disposal_amount: Decimal
    ) -> DisposalResult:
        """Retire an asset. A positive gain_loss is a gain over net book value."""
        require_write(self._context, "dispose_asset")
        asset = self.get_asset(asset_id)
        if asset.status == AssetStatus.DISPOSED:
            raise AssetDisposedError(asset.id)
        if disposal_amount < 0:
            raise ValidationError("Disposal amount cannot be negative")

        before = snapshot(asset, "status")
        net_book_value = asset.net_book_value
        gain_loss = disposal_amount - net_book_value
        asset.status = AssetStatus.DISPOSED
        asset.disposed_date = disposed_date
        asset.disposal_amount = disposal_amount
        self._asset_repo.update(asset)
        self._audit.log_update(
            "FixedAsset",
            asset.id,
            before,
            {
                "status": asset.status.value,
                "disposal_amount": str(disposal_amount),
                "gain_loss": str(gain_loss),
            },
            entity_id=asset.entity_id,
        )
        logger.info("asset_disposed", asset_id=str(asset.id), gain_loss=str(gain_loss))
        return DisposalResult(asset=asset, net_book_value=net_book_value, gain_loss=gain_loss)

    def calculate_period_depreciation(self, asset_id: UUID, period_date: date) -> Decimal:
        """Preview the charge a run for ``period_date`` would book for one asset."""
        asset = self.get_asset(asset_id)
        if asset.status != AssetStatus.ACTIVE:
            return Decimal("0")
        period = first_of_month(period_date)
        if first_of_month(asset.acquired_date) > period:
            return Decimal("0")
        return asset.depreciation_for(period)

    def run_depreciation(
        self,
        entity_id: UUID,
        period_date: date,
        asset_ids: list[UUID] | None = None,
    ) -> DepreciationRunResult:
        """Book one month of depreciation for the entity's active assets.

        Each asset is committed on its own, so a run that fails part-way can
        be repeated; assets already booked for the month are skipped.
        """
        require_write(self._context, "run_depreciation")
        require_entity(self._entity_repo, self._context, entity_id)
        period = first_of_month(period_date)
        result = DepreciationRunResult(period_date=period)

        assets = self._asset_repo.list_by_entity(entity_id, AssetStatus.ACTIVE)
        if asset_ids:
            wanted = set(asset_ids)
            assets = [asset for asset in assets if asset.id in wanted]

        for asset in assets:
            if self._asset_repo.get_depreciation_entry(asset.id, period) is not None:
                result.skipped += 1
                continue
            if first_of_month(asset.acquired_date) > period:
                result.skipped += 1
                continue
            amount = asset.depreciation_for(period)
            if amount <= 0:
                result.skipped += 1
                continue
            with LogContext(asset_id=str(asset.id)):
                result.entries.append(self._book(asset, period, amount))
            result.processed += 1

        self._audit.log_update(
            "FixedAsset",
            entity_id,
            {},
            {
                "action": "RUN_DEPRECIATION",
                "period_date": period.isoformat(),
                "processed": result.processed,
                "skipped": result.skipped,
            },
            entity_id=entity_id,
        )
        logger.info(
            "depreciation_run_completed",
            entity_id=str(entity_id),
            period=period.isoformat(),
            processed=result.processed,
            skipped=result.skipped,
        )
        return result

    def _book(self, asset: FixedAsset, period: date, amount: Decimal) -> DepreciationEntry:
        entity = require_entity(self._entity_repo, self._context, asset.entity_id)
        currency = entity.functional_currency
        entry = DepreciationEntry(
            fixed_asset_id=asset.id,
            period_date=period,
            amount=amount,
            method=asset.depreciation_method,
        )
        with self._db.transaction():
            if (
                asset.depreciation_expense_gl_account_id is not None
                and asset.accumulated_depreciation_gl_account_id is not None
            ):
                journal_entry = self._journal.record_posted_entry(
                    entity_id=asset.entity_id,
                    entry_date=period,
                    memo=f"Depreciation: {asset.name} ({period:%Y-%m})",
                    lines=[
                        JournalLine(
                            gl_account_id=asset.depreciation_expense_gl_account_id,
                            debit_amount=Money(amount, currency),
                            credit_amount=Money.zero(currency),
                            memo=f"Depreciation expense: {asset.name}",
                        ),
                        JournalLine(
                            gl_account_id=asset.accumulated_depreciation_gl_account_id,
                            debit_amount=Money.zero(currency),
                            credit_amount=Money(amount, currency),
                            memo=f"Accumulated depreciation: {asset.name}",
                        ),
                    ],
                    source_type=SourceType.DEPRECIATION,
                    source_id=asset.id,
                    source_document={
                        "asset_id": str(asset.id),
                        "asset_name": asset.name,
                        "period_date": period.isoformat(),
                        "method": asset.depreciation_method.value,
                        "amount": str(amount),
                    },
                )
                entry.journal_entry_id = journal_entry.id
            self._asset_repo.add_depreciation_entry(entry)
            asset.accumulated_depreciation += amount
            if asset.is_fully_depreciated:
                asset.status = AssetStatus.FULLY_DEPRECIATED
            self._asset_repo.update(asset)
        logger.debug("depreciation_booked", period=period.isoformat(), amount=str(amount))
        return entry

    def _check_gl_account(self, gl_account_id: UUID, entity_id: UUID) -> None:
        account = self._gl_account_repo.get(gl_account_id)
        if account is None or account.entity_id != entity_id:
            raise CrossEntityReferenceError([str(gl_account_id)], entity_id)
