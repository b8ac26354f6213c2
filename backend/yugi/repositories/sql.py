# backend/yugi/repositories/sql.py
"""
SQLAlchemy-backed stores.

Each call runs in its own short transaction from the injected session
factory, so the stores are safe to share between request threads and the
completion sweep. Status changes are compare-and-swap ``UPDATE`` statements.
Datetimes are written in UTC; SQLite keeps no offset.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.clock import as_utc
from ..core.exceptions import RepositoryException
from ..core.money import Money
from ..database.tables import (
    BankAccountRow,
    BookingRow,
    ClassSnapshotRow,
    SettlementEntryRow,
    WithdrawalRow,
)
from ..models.booking import Booking, BookingStatus, CancelledBy, ClassSnapshot, EnhancedBooking
from ..models.settlement import BankAccount, SettlementEntry, WithdrawalRecord, WithdrawalStatus

logger = logging.getLogger(__name__)

SessionFactory = sessionmaker[Session]


def _pence(value: Optional[Money]) -> Optional[int]:
    return value.pence if value is not None else None


def _money(pence: Optional[int]) -> Optional[Money]:
    return Money.from_pence(pence) if pence is not None else None


class _SqlRepository:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def _write(self, description: str, fn: Any) -> Any:
        try:
            with self._session_factory.begin() as session:
                return fn(session)
        except IntegrityError as exc:
            logger.warning("Integrity error during %s: %s", description, exc.orig)
            raise RepositoryException(f"Constraint violated during {description}") from exc
        except SQLAlchemyError as exc:
            logger.error("Database error during %s: %s", description, exc)
            raise RepositoryException(f"Database error during {description}") from exc

    def _read(self, fn: Any) -> Any:
        try:
            with self._session_factory() as session:
                return fn(session)
        except SQLAlchemyError as exc:
            logger.error("Database read failed: %s", exc)
            raise RepositoryException("Database read failed") from exc


class SqlBookingRepository(_SqlRepository):
    _CHANGE_COLUMNS = {
        "attended",
        "completed_at",
        "cancelled_at",
        "cancelled_by",
        "cancellation_reason",
        "refund_amount",
    }

    @staticmethod
    def _to_domain(row: BookingRow, snap: ClassSnapshotRow) -> EnhancedBooking:
        booking = Booking(
            id=row.id,
            booking_number=row.booking_number,
            class_id=row.class_id,
            user_id=row.user_id,
            status=BookingStatus(row.status),
            start_time=as_utc(row.start_time),  # type: ignore[arg-type]
            duration_seconds=row.duration_seconds,
            participant_count=row.participant_count,
            selected_child_ids=tuple(row.selected_child_ids or ()),
            special_requirements=row.special_requirements,
            attended=row.attended,
            created_at=as_utc(row.created_at),
            completed_at=as_utc(row.completed_at),
            cancelled_at=as_utc(row.cancelled_at),
            cancelled_by=CancelledBy(row.cancelled_by) if row.cancelled_by else None,
            cancellation_reason=row.cancellation_reason,
            refund_amount=_money(row.refund_amount_pence),
        )
        snapshot = ClassSnapshot(
            provider_id=snap.provider_id,
            class_name=snap.class_name,
            base_price=Money.from_pence(snap.base_price_pence),
            service_fee=Money.from_pence(snap.service_fee_pence),
            location=snap.location,
            requires_child_selection=snap.requires_child_selection,
        )
        return EnhancedBooking(booking=booking, snapshot=snapshot)

    def _select(self):  # type: ignore[no-untyped-def]
        return select(BookingRow, ClassSnapshotRow).join(
            ClassSnapshotRow, ClassSnapshotRow.booking_id == BookingRow.id
        )

    def add(self, enhanced: EnhancedBooking) -> EnhancedBooking:
        b, s = enhanced.booking, enhanced.snapshot

        def _add(session: Session) -> EnhancedBooking:
            session.add(
                BookingRow(
                    id=b.id,
                    booking_number=b.booking_number,
                    class_id=b.class_id,
                    user_id=b.user_id,
                    status=b.status.value,
                    start_time=as_utc(b.start_time),
                    duration_seconds=b.duration_seconds,
                    participant_count=b.participant_count,
                    selected_child_ids=list(b.selected_child_ids),
                    special_requirements=b.special_requirements,
                    attended=b.attended,
                    created_at=as_utc(b.created_at),
                    refund_amount_pence=_pence(b.refund_amount),
                )
            )
            # Flush the parent first so the snapshot's foreign key resolves.
            session.flush()
            session.add(
                ClassSnapshotRow(
                    booking_id=b.id,
                    provider_id=s.provider_id,
                    class_name=s.class_name,
                    base_price_pence=s.base_price.pence,
                    service_fee_pence=s.service_fee.pence,
                    location=s.location,
                    requires_child_selection=s.requires_child_selection,
                )
            )
            return enhanced

        return self._write("booking insert", _add)

    def get(self, booking_id: str) -> Optional[EnhancedBooking]:
        def _get(session: Session) -> Optional[EnhancedBooking]:
            row = session.execute(self._select().where(BookingRow.id == booking_id)).first()
            return self._to_domain(row[0], row[1]) if row else None

        return self._read(_get)

    def list_by_status(self, status: BookingStatus) -> List[EnhancedBooking]:
        def _list(session: Session) -> List[EnhancedBooking]:
            rows = session.execute(
                self._select()
                .where(BookingRow.status == status.value)
                .order_by(BookingRow.start_time)
            ).all()
            return [self._to_domain(r[0], r[1]) for r in rows]

        return self._read(_list)

    def list_for_user(self, user_id: str) -> List[EnhancedBooking]:
        def _list(session: Session) -> List[EnhancedBooking]:
            rows = session.execute(
                self._select().where(BookingRow.user_id == user_id).order_by(BookingRow.start_time)
            ).all()
            return [self._to_domain(r[0], r[1]) for r in rows]

        return self._read(_list)

    def count_created_on(self, day: date) -> int:
        # created_at is always written in UTC, so a UTC day range matches it.
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)

        def _count(session: Session) -> int:
            stmt = select(func.count(BookingRow.id)).where(
                BookingRow.created_at >= start, BookingRow.created_at < end
            )
            return int(session.execute(stmt).scalar_one())

        return self._read(_count)

    def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        **changes: Any,
    ) -> bool:
        unknown = set(changes) - self._CHANGE_COLUMNS
        if unknown:
            raise RepositoryException(f"Unsupported booking changes: {sorted(unknown)}")

        values: Dict[str, Any] = {"status": new.value}
        for key, value in changes.items():
            if key == "refund_amount":
                values["refund_amount_pence"] = _pence(value)
            elif isinstance(value, datetime):
                values[key] = as_utc(value)
            elif key == "cancelled_by":
                values["cancelled_by"] = value.value if value is not None else None
            else:
                values[key] = value

        def _cas(session: Session) -> bool:
            result = session.execute(
                update(BookingRow)
                .where(and_(BookingRow.id == booking_id, BookingRow.status == expected.value))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

        return self._write("booking status update", _cas)


class SqlSettlementRepository(_SqlRepository):
    @staticmethod
    def _to_domain(row: SettlementEntryRow) -> SettlementEntry:
        return SettlementEntry(
            booking_id=row.booking_id,
            provider_id=row.provider_id,
            gross_amount=Money.from_pence(row.gross_pence),
            commission_amount=Money.from_pence(row.commission_pence),
            net_amount=Money.from_pence(row.net_pence),
            completed_at=as_utc(row.completed_at),  # type: ignore[arg-type]
            held_until=as_utc(row.held_until),  # type: ignore[arg-type]
            dispute_open=row.dispute_open,
            forfeited=row.forfeited,
            dispute_opened_at=as_utc(row.dispute_opened_at),
            dispute_resolved_at=as_utc(row.dispute_resolved_at),
        )

    def add(self, entry: SettlementEntry) -> SettlementEntry:
        def _add(session: Session) -> SettlementEntry:
            session.add(
                SettlementEntryRow(
                    booking_id=entry.booking_id,
                    provider_id=entry.provider_id,
                    gross_pence=entry.gross_amount.pence,
                    commission_pence=entry.commission_amount.pence,
                    net_pence=entry.net_amount.pence,
                    completed_at=as_utc(entry.completed_at),
                    held_until=as_utc(entry.held_until),
                    dispute_open=entry.dispute_open,
                    forfeited=entry.forfeited,
                    dispute_opened_at=as_utc(entry.dispute_opened_at),
                    dispute_resolved_at=as_utc(entry.dispute_resolved_at),
                )
            )
            return entry

        return self._write("settlement insert", _add)

    def get_by_booking(self, booking_id: str) -> Optional[SettlementEntry]:
        def _get(session: Session) -> Optional[SettlementEntry]:
            row = session.get(SettlementEntryRow, booking_id)
            return self._to_domain(row) if row else None

        return self._read(_get)

    def list_by_provider(self, provider_id: str) -> List[SettlementEntry]:
        def _list(session: Session) -> List[SettlementEntry]:
            rows = session.execute(
                select(SettlementEntryRow)
                .where(SettlementEntryRow.provider_id == provider_id)
                .order_by(SettlementEntryRow.completed_at)
            ).scalars()
            return [self._to_domain(r) for r in rows]

        return self._read(_list)

    def update(self, entry: SettlementEntry) -> SettlementEntry:
        def _update(session: Session) -> SettlementEntry:
            row = session.get(SettlementEntryRow, entry.booking_id)
            if row is None:
                raise RepositoryException(f"No settlement entry for booking {entry.booking_id}")
            # Amounts are immutable; only the dispute and hold fields move.
            row.dispute_open = entry.dispute_open
            row.forfeited = entry.forfeited
            row.held_until = as_utc(entry.held_until)  # type: ignore[assignment]
            row.dispute_opened_at = as_utc(entry.dispute_opened_at)
            row.dispute_resolved_at = as_utc(entry.dispute_resolved_at)
            return entry

        return self._write("settlement update", _update)


class SqlBankAccountRepository(_SqlRepository):
    @staticmethod
    def _to_domain(row: BankAccountRow) -> BankAccount:
        return BankAccount(
            id=row.id,
            provider_id=row.provider_id,
            account_name=row.account_name,
            account_number=row.account_number,
            sort_code=row.sort_code,
            bank_name=row.bank_name,
            is_default=row.is_default,
        )

    def add(self, account: BankAccount) -> BankAccount:
        def _add(session: Session) -> BankAccount:
            session.add(
                BankAccountRow(
                    id=account.id,
                    provider_id=account.provider_id,
                    account_name=account.account_name,
                    account_number=account.account_number,
                    sort_code=account.sort_code,
                    bank_name=account.bank_name,
                    is_default=account.is_default,
                )
            )
            return account

        return self._write("bank account insert", _add)

    def get(self, account_id: str) -> Optional[BankAccount]:
        def _get(session: Session) -> Optional[BankAccount]:
            row = session.get(BankAccountRow, account_id)
            return self._to_domain(row) if row else None

        return self._read(_get)

    def list_by_provider(self, provider_id: str) -> List[BankAccount]:
        def _list(session: Session) -> List[BankAccount]:
            rows = session.execute(
                select(BankAccountRow).where(BankAccountRow.provider_id == provider_id)
            ).scalars()
            return [self._to_domain(r) for r in rows]

        return self._read(_list)

    def remove(self, account_id: str) -> Optional[BankAccount]:
        def _remove(session: Session) -> Optional[BankAccount]:
            row = session.get(BankAccountRow, account_id)
            if row is None:
                return None
            account = self._to_domain(row)
            session.delete(row)
            return account

        return self._write("bank account delete", _remove)

    def set_default(self, provider_id: str, account_id: Optional[str]) -> None:
        def _set(session: Session) -> None:
            if account_id is not None:
                target = session.get(BankAccountRow, account_id)
                if target is None or target.provider_id != provider_id:
                    raise RepositoryException(
                        f"Bank account {account_id} does not belong to provider {provider_id}"
                    )
            session.execute(
                update(BankAccountRow)
                .where(BankAccountRow.provider_id == provider_id)
                .values(is_default=False)
                .execution_options(synchronize_session=False)
            )
            if account_id is not None:
                session.execute(
                    update(BankAccountRow)
                    .where(BankAccountRow.id == account_id)
                    .values(is_default=True)
                    .execution_options(synchronize_session=False)
                )

        self._write("bank account default change", _set)


class SqlWithdrawalRepository(_SqlRepository):
    @staticmethod
    def _to_domain(row: WithdrawalRow) -> WithdrawalRecord:
        return WithdrawalRecord(
            id=row.id,
            provider_id=row.provider_id,
            bank_account_id=row.bank_account_id,
            amount=Money.from_pence(row.amount_pence),
            requested_at=as_utc(row.requested_at),  # type: ignore[arg-type]
            status=WithdrawalStatus(row.status),
            settled_at=as_utc(row.settled_at),
        )

    def add(self, record: WithdrawalRecord) -> WithdrawalRecord:
        def _add(session: Session) -> WithdrawalRecord:
            session.add(
                WithdrawalRow(
                    id=record.id,
                    provider_id=record.provider_id,
                    bank_account_id=record.bank_account_id,
                    amount_pence=record.amount.pence,
                    requested_at=as_utc(record.requested_at),
                    status=record.status.value,
                    settled_at=as_utc(record.settled_at),
                )
            )
            return record

        return self._write("withdrawal insert", _add)

    def get(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        def _get(session: Session) -> Optional[WithdrawalRecord]:
            row = session.get(WithdrawalRow, withdrawal_id)
            return self._to_domain(row) if row else None

        return self._read(_get)

    def list_by_provider(self, provider_id: str) -> List[WithdrawalRecord]:
        def _list(session: Session) -> List[WithdrawalRecord]:
            rows = session.execute(
                select(WithdrawalRow)
                .where(WithdrawalRow.provider_id == provider_id)
                .order_by(WithdrawalRow.requested_at)
            ).scalars()
            return [self._to_domain(r) for r in rows]

        return self._read(_list)

    def update_status(
        self,
        withdrawal_id: str,
        expected: WithdrawalStatus,
        new: WithdrawalStatus,
        settled_at: Optional[datetime],
    ) -> bool:
        def _cas(session: Session) -> bool:
            result = session.execute(
                update(WithdrawalRow)
                .where(and_(WithdrawalRow.id == withdrawal_id, WithdrawalRow.status == expected.value))
                .values(status=new.value, settled_at=as_utc(settled_at))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

        return self._write("withdrawal status update", _cas)
