from pydantic import BaseModel, ConfigDict, field_serializer
from typing import Optional, Literal
from datetime import date, datetime

AssetStatus = Literal["active", "borrowed", "maintenance", "inactive"]
ManualAssetStatus = Literal["active", "maintenance", "inactive"]
BorrowStatus = Literal["pending", "approved", "rejected", "returned"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class TimestampedModel(BaseModel):
    @field_serializer("created_at", "updated_at", check_fields=False)
    def _format_timestamp(self, value: datetime) -> str:
        return value.strftime(TIMESTAMP_FORMAT)


# ---------- Asset ----------
class AssetIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    serial_number: str
    name: str
    department: Optional[str] = None
    note: Optional[str] = None
    status: ManualAssetStatus = "active"

class AssetUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    department: Optional[str] = None
    note: Optional[str] = None
    status: Optional[ManualAssetStatus] = None

class Asset(TimestampedModel):
    id: int
    serial_number: str
    name: str
    department: Optional[str] = None
    note: Optional[str] = None
    status: AssetStatus = "active"
    created_at: datetime
    updated_at: datetime

class AssetsMeta(BaseModel):
    total: int
    limit: int
    offset: int
    total_pages: int

class AssetStats(BaseModel):
    total: int
    active: int
    borrowed: int
    maintenance: int
    inactive: int


# ---------- Borrow requests ----------
class BorrowCreate(BaseModel):
    """Body of POST /borrow. ``asset_id`` carries the asset serial number."""

    model_config = ConfigDict(extra="forbid")

    asset_id: str
    borrower_name: str
    borrower_department: str
    borrower_contact: str
    borrower_email: str
    purpose: str
    expected_return_date: date
    requested_date: Optional[date] = None
    notes: Optional[str] = None
    borrower_id: Optional[str] = None

class BorrowEdit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    borrower_name: Optional[str] = None
    borrower_department: Optional[str] = None
    borrower_contact: Optional[str] = None
    borrower_email: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    requested_date: Optional[date] = None
    expected_return_date: Optional[date] = None

class RejectIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = ""

class ReturnIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actual_return_date: Optional[date] = None

class BorrowCreated(BaseModel):
    id: int
    borrower_id: str
    message: str = "Borrow application created."

class BorrowRequest(TimestampedModel):
    id: int
    asset_id: int
    serial_number: str
    asset_name: Optional[str] = None
    borrower_id: str
    borrower_name: str
    borrower_email: str
    borrower_department: str
    borrower_contact: str
    requested_date: date
    expected_return_date: date
    actual_return_date: Optional[date] = None
    purpose: str
    notes: Optional[str] = None
    status: BorrowStatus
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class BorrowRecords(BaseModel):
    records: list[BorrowRequest]

class BorrowMeta(BaseModel):
    total: int
    limit: int
    offset: int
    total_pages: int

class BorrowStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    returned: int
    overdue: int
