"""
SQLAlchemy tables backing the SQL stores.

Money columns hold integer pence so amounts round-trip exactly on every
dialect. Datetimes are stored in UTC.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class BookingRow(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_child_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    special_requirements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_amount_pence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (Index("ix_bookings_user_class", "user_id", "class_id"),)


class ClassSnapshotRow(Base):
    """Class details as they were when the booking was made."""

    __tablename__ = "booking_class_snapshots"

    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True
    )
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    class_name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_price_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    service_fee_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requires_child_selection: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SettlementEntryRow(Base):
    __tablename__ = "settlement_entries"

    booking_id: Mapped[str] = mapped_column(String(26), ForeignKey("bookings.id"), primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    gross_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    net_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    held_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    dispute_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    forfeited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dispute_opened_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    dispute_resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class BankAccountRow(Base):
    __tablename__ = "bank_accounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str] = mapped_column(String(16), nullable=False)
    sort_code: Mapped[str] = mapped_column(String(8), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class WithdrawalRow(Base):
    __tablename__ = "withdrawals"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bank_account_id: Mapped[str] = mapped_column(String(26), nullable=False)
    amount_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
