from __future__ import annotations

from datetime import date, datetime, timezone

from typing import Optional

from sqlalchemy import select, delete, func, or_, update
from sqlalchemy.orm import Session

from errors import Conflict
from models import Asset, AssetIn, AssetUpdate, BorrowRequest
from orm import AssetORM, BorrowRequestORM

ASSET_STATUSES = ("active", "borrowed", "maintenance", "inactive")
BORROW_STATUSES = ("pending", "approved", "rejected", "returned")
OPEN_STATUSES = ("pending", "approved")
CLOSED_STATUSES = ("rejected", "returned")

ALLOWED_SORTS = {
    "serial_number": AssetORM.serial_number,
    "name": AssetORM.name,
    "status": AssetORM.status,
    "department": AssetORM.department,
    "updated_at": AssetORM.updated_at,
}

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def _asset_to_schema(a: AssetORM) -> Asset:
    return Asset(
        id=a.id,
        serial_number=a.serial_number,
        name=a.name,
        department=a.department,
        note=a.note,
        status=a.status,  # type: ignore
        created_at=a.created_at,
        updated_at=a.updated_at,
    )

def _request_to_schema(r: BorrowRequestORM, a: AssetORM) -> BorrowRequest:
    return BorrowRequest(
        id=r.id,
        asset_id=r.asset_id,
        serial_number=a.serial_number,
        asset_name=a.name,
        borrower_id=r.borrower_id,
        borrower_name=r.borrower_name,
        borrower_email=r.borrower_email,
        borrower_department=r.borrower_department,
        borrower_contact=r.borrower_contact,
        requested_date=r.requested_date,
        expected_return_date=r.expected_return_date,
        actual_return_date=r.actual_return_date,
        purpose=r.purpose,
        notes=r.notes,
        status=r.status,  # type: ignore
        rejection_reason=r.rejection_reason,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


# ---------- Asset ----------
def serial_number_exists(db: Session, serial_number: str) -> bool:
    stmt = select(AssetORM.id).where(AssetORM.serial_number == serial_number)
    return db.execute(stmt).first() is not None


def get_asset(db: Session, asset_id: int) -> Optional[Asset]:
    row = db.get(AssetORM, asset_id)
    return _asset_to_schema(row) if row else None


def get_asset_row_by_serial(db: Session, serial_number: str) -> Optional[AssetORM]:
    stmt = select(AssetORM).where(AssetORM.serial_number == serial_number).limit(1)
    return db.execute(stmt).scalars().first()


def get_asset_by_serial(db: Session, serial_number: str) -> Optional[Asset]:
    row = get_asset_row_by_serial(db, serial_number)
    return _asset_to_schema(row) if row else None


def create_asset(db: Session, body: AssetIn, *, commit: bool = True) -> Asset:
    now = utcnow()

    a = AssetORM(
        serial_number=body.serial_number.strip(),
        name=body.name.strip(),
        department=(body.department or "").strip() or None,
        note=body.note,
        status=body.status,
        created_at=now,
        updated_at=now,
    )
    db.add(a)
    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    return _asset_to_schema(a)


def update_asset(db: Session, asset_id: int, body: AssetUpdate, *, commit: bool = True) -> Optional[Asset]:
    a = db.get(AssetORM, asset_id)
    if not a:
        return None

    data = body.model_dump(exclude_unset=True)
    new_status = data.pop("status", None)

    if new_status is not None and new_status != a.status:
        # borrowed is owned by the lending workflow
        result = db.execute(
            update(AssetORM)
            .where(AssetORM.id == asset_id, AssetORM.status != "borrowed")
            .values(status=new_status)
        )
        if result.rowcount == 0:
            db.rollback()
            raise Conflict(
                f"Asset {a.serial_number} is currently borrowed; return it before changing its status.",
                reason="asset_borrowed",
            )

    for k, v in data.items():
        setattr(a, k, v)
    a.updated_at = utcnow()

    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    return _asset_to_schema(a)


def delete_asset(db: Session, asset_id: int, *, commit: bool = True) -> bool:
    referenced = db.execute(
        select(func.count()).select_from(BorrowRequestORM).where(BorrowRequestORM.asset_id == asset_id)
    ).scalar_one()
    if int(referenced) > 0:
        raise Conflict("Asset is referenced by borrow requests and cannot be deleted.", reason="asset_in_use")

    result = db.execute(delete(AssetORM).where(AssetORM.id == asset_id))
    persist(db, commit=commit)
    return result.rowcount > 0


def build_assets_query(q: str | None, status: str | None, department: str | None):
    stmt = select(AssetORM)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                AssetORM.name.ilike(like),
                AssetORM.serial_number.ilike(like),
                AssetORM.note.ilike(like),
            )
        )
    if status:
        stmt = stmt.where(AssetORM.status == status)

    if department:
        stmt = stmt.where(AssetORM.department == department)

    return stmt

def assets_meta(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    department: str | None,
    limit: int,
    offset: int,
) -> dict:
    total = count_assets_filtered(db, q=q, status=status, department=department)
    return page_meta(total, limit=limit, offset=offset)

def count_assets_filtered(db: Session, *, q: str | None, status: str | None, department: str | None) -> int:
    stmt = build_assets_query(q, status, department)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())

def list_assets_filtered(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    department: str | None,
    sort: str,
    order: str,
    limit: int,
    offset: int,
) -> list[Asset]:
    stmt = build_assets_query(q, status, department)

    col = ALLOWED_SORTS.get(sort, AssetORM.serial_number)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc())

    stmt = stmt.limit(limit).offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [_asset_to_schema(a) for a in rows]

def asset_stats(db: Session) -> dict:
    rows = db.execute(
        select(AssetORM.status, func.count()).group_by(AssetORM.status)
    ).all()
    counts = {s: 0 for s in ASSET_STATUSES}
    for status, n in rows:
        counts[status] = int(n)
    counts["total"] = sum(counts.values())
    return counts

def page_meta(total: int, *, limit: int, offset: int) -> dict:
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    total_pages = max(1, (total + limit - 1) // limit)
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "total_pages": total_pages,
    }

# ---------- Borrow requests ----------
def get_request_row(db: Session, request_id: int) -> Optional[BorrowRequestORM]:
    return db.get(BorrowRequestORM, request_id)


def get_request(db: Session, request_id: int) -> Optional[BorrowRequest]:
    stmt = (
        select(BorrowRequestORM, AssetORM)
        .join(AssetORM, BorrowRequestORM.asset_id == AssetORM.id)
        .where(BorrowRequestORM.id == request_id)
    )
    row = db.execute(stmt).first()
    return _request_to_schema(row[0], row[1]) if row else None


def has_open_request(db: Session, asset_id: int) -> bool:
    stmt = select(BorrowRequestORM.id).where(
        BorrowRequestORM.asset_id == asset_id,
        BorrowRequestORM.status.in_(OPEN_STATUSES),
    )
    return db.execute(stmt).first() is not None


def insert_request(db: Session, values: dict) -> BorrowRequestORM:
    now = utcnow()
    r = BorrowRequestORM(status="pending", created_at=now, updated_at=now, **values)
    db.add(r)
    db.flush()
    return r


def set_request_fields(db: Session, request_id: int, *, expected: tuple[str, ...], values: dict) -> bool:
    """Compare-and-set: update the request only while its status is in ``expected``."""
    result = db.execute(
        update(BorrowRequestORM)
        .where(BorrowRequestORM.id == request_id, BorrowRequestORM.status.in_(expected))
        .values(updated_at=utcnow(), **values)
    )
    return result.rowcount == 1


def set_asset_status(db: Session, asset_id: int, status: str, *, expected: Optional[str] = None) -> bool:
    stmt = update(AssetORM).where(AssetORM.id == asset_id)
    if expected is not None:
        stmt = stmt.where(AssetORM.status == expected)
    result = db.execute(stmt.values(status=status, updated_at=utcnow()))
    return result.rowcount == 1


def remove_request(db: Session, request_id: int, *, expected: tuple[str, ...]) -> bool:
    result = db.execute(
        delete(BorrowRequestORM).where(
            BorrowRequestORM.id == request_id,
            BorrowRequestORM.status.in_(expected),
        )
    )
    return result.rowcount == 1


def build_requests_query(q: str | None, status: str | None):
    stmt = select(BorrowRequestORM, AssetORM).join(AssetORM, BorrowRequestORM.asset_id == AssetORM.id)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                BorrowRequestORM.borrower_name.ilike(like),
                BorrowRequestORM.borrower_email.ilike(like),
                AssetORM.serial_number.ilike(like),
                AssetORM.name.ilike(like),
            )
        )
    if status:
        stmt = stmt.where(BorrowRequestORM.status == status)

    return stmt


def count_requests(db: Session, *, q: str | None, status: str | None) -> int:
    stmt = build_requests_query(q, status)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())


def list_requests(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    limit: int,
    offset: int,
) -> list[BorrowRequest]:
    stmt = (
        build_requests_query(q, status)
        .order_by(BorrowRequestORM.created_at.desc(), BorrowRequestORM.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_request_to_schema(r, a) for r, a in db.execute(stmt).all()]


def request_stats(db: Session, *, today: Optional[date] = None) -> dict:
    today = today or date.today()
    rows = db.execute(
        select(BorrowRequestORM.status, func.count()).group_by(BorrowRequestORM.status)
    ).all()
    counts = {s: 0 for s in BORROW_STATUSES}
    for status, n in rows:
        counts[status] = int(n)
    counts["total"] = sum(counts.values())

    overdue = db.execute(
        select(func.count())
        .select_from(BorrowRequestORM)
        .where(
            BorrowRequestORM.status == "approved",
            BorrowRequestORM.expected_return_date < today,
        )
    ).scalar_one()
    counts["overdue"] = int(overdue)
    return counts
