from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, Text, ForeignKey, Integer, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from db import Base

OPEN_STATUSES_SQL = "status IN ('pending', 'approved')"

class AssetORM(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    serial_number: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

class BorrowRequestORM(Base):
    __tablename__ = "borrow_requests"
    __table_args__ = (
        # at most one open request per asset
        Index(
            "uq_borrow_requests_open_asset",
            "asset_id",
            unique=True,
            sqlite_where=text(OPEN_STATUSES_SQL),
            postgresql_where=text(OPEN_STATUSES_SQL),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    asset_id: Mapped[int] = mapped_column(Integer, ForeignKey("assets.id"), nullable=False, index=True)

    borrower_id: Mapped[str] = mapped_column(String, nullable=False)
    borrower_name: Mapped[str] = mapped_column(String, nullable=False)
    borrower_department: Mapped[str] = mapped_column(String, nullable=False)
    borrower_contact: Mapped[str] = mapped_column(String, nullable=False)
    borrower_email: Mapped[str] = mapped_column(String, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_return_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_return_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
