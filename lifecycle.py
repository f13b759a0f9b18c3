"""Borrow request lifecycle.

Legal transitions::

    pending -> approved -> returned
    pending -> rejected

``rejected`` and ``returned`` are terminal. Asset availability follows the
request: approving marks the asset ``borrowed`` and returning marks it
``active`` again, in the same transaction as the request update. Creation
leaves the asset untouched.

Every operation works on the caller's ``Session``. With ``commit=True`` the
transaction is committed before returning; with ``commit=False`` changes are
only flushed and the caller owns the commit. On any failure the session is
rolled back and one ``errors.LendingError`` subclass is raised.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import crud
from errors import (
    AssetUnavailable,
    Conflict,
    LendingError,
    NotFound,
    StorageError,
    UnexpectedError,
)
from models import BorrowCreate, BorrowCreated, BorrowEdit, BorrowRequest
from orm import BorrowRequestORM
from validation import (
    check_borrower_fields,
    check_dates,
    raise_if_errors,
    require_reason,
    sanitize_optional,
    sanitize_text,
)

logger = logging.getLogger("app.lifecycle")

BORROWER_ID_PREFIX = "BORR"
REQUIRED_TEXT_FIELDS = (
    "borrower_name",
    "borrower_department",
    "borrower_contact",
    "borrower_email",
    "purpose",
)


def generate_borrower_id(now: Optional[datetime] = None) -> str:
    # e.g. BORR-20251016093015-123
    now = now or datetime.now()
    return f"{BORROWER_ID_PREFIX}-{now:%Y%m%d%H%M%S}-{random.randint(100, 999)}"


@contextmanager
def unit_of_work(db: Session, *, commit: bool, action: str) -> Iterator[None]:
    try:
        yield
        crud.persist(db, commit=commit)
    except LendingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("storage failure action=%s", action)
        raise StorageError(
            "The borrow request could not be saved. Please try again.",
            reason=f"storage_failed:{action}",
        ) from exc
    except Exception as exc:
        db.rollback()
        logger.exception("unexpected failure action=%s", action)
        raise UnexpectedError(
            "An unexpected error occurred. Please try again.",
            reason=f"unexpected:{action}",
        ) from exc


def _load(db: Session, request_id: int) -> BorrowRequestORM:
    row = crud.get_request_row(db, request_id)
    if row is None:
        raise NotFound(f"Borrow request {request_id} not found.", reason="request_not_found")
    return row


def _require_status(row: BorrowRequestORM, allowed: tuple[str, ...], action: str) -> None:
    if row.status in allowed:
        return
    if row.status in crud.CLOSED_STATUSES:
        raise Conflict(
            f"Borrow request {row.id} is already {row.status}; it cannot be changed.",
            reason="request_closed",
        )
    raise Conflict(
        f"Cannot {action} borrow request {row.id} while it is {row.status}.",
        reason="invalid_transition",
    )


def _lost_race(db: Session, row: BorrowRequestORM, action: str) -> Conflict:
    db.refresh(row)
    return Conflict(
        f"Borrow request {row.id} changed to {row.status} before it could be {action}.",
        reason="concurrent_update",
    )


def _result(db: Session, request_id: int) -> BorrowRequest:
    record = crud.get_request(db, request_id)
    if record is None:
        raise NotFound(f"Borrow request {request_id} not found.", reason="request_not_found")
    return record


def get_request(db: Session, request_id: int) -> BorrowRequest:
    return _result(db, request_id)


def create_request(db: Session, body: BorrowCreate, *, commit: bool = True) -> BorrowCreated:
    with unit_of_work(db, commit=commit, action="create"):
        lookup_serial = (body.asset_id or "").strip()
        serial = sanitize_text(lookup_serial)
        cleaned, errors = check_borrower_fields(
            {"asset_id": body.asset_id, **{f: getattr(body, f) for f in REQUIRED_TEXT_FIELDS}}
        )
        requested = body.requested_date or date.today()
        errors += check_dates(requested, body.expected_return_date)
        raise_if_errors(errors)

        asset = crud.get_asset_row_by_serial(db, lookup_serial)
        if asset is None:
            raise NotFound(
                f"Asset with serial number '{serial}' not found.",
                reason="asset_not_found",
            )
        if asset.status != "active":
            raise AssetUnavailable(
                f"Asset is not available for borrowing (status: {asset.status}).",
            )
        if crud.has_open_request(db, asset.id):
            raise AssetUnavailable(
                f"Asset {serial} already has an open borrow request.",
                reason="asset_already_requested",
            )

        asset_pk = asset.id
        borrower_id = sanitize_text(body.borrower_id) or generate_borrower_id()
        values = {f: cleaned[f] for f in REQUIRED_TEXT_FIELDS}
        try:
            row = crud.insert_request(
                db,
                {
                    "asset_id": asset_pk,
                    "borrower_id": borrower_id,
                    "notes": sanitize_optional(body.notes),
                    "requested_date": requested,
                    "expected_return_date": body.expected_return_date,
                    **values,
                },
            )
        except IntegrityError:
            db.rollback()
            if not crud.has_open_request(db, asset_pk):
                raise
            # a concurrent create won the open-request slot
            raise AssetUnavailable(
                f"Asset {serial} already has an open borrow request.",
                reason="asset_already_requested",
            )
        request_id = row.id

    logger.info("borrow request created id=%s asset=%s borrower_id=%s", request_id, serial, borrower_id)
    return BorrowCreated(id=request_id, borrower_id=borrower_id)


def approve_request(db: Session, request_id: int, *, commit: bool = True) -> BorrowRequest:
    with unit_of_work(db, commit=commit, action="approve"):
        row = _load(db, request_id)
        _require_status(row, ("pending",), "approve")

        if not crud.set_request_fields(db, request_id, expected=("pending",), values={"status": "approved"}):
            raise _lost_race(db, row, "approved")
        if not crud.set_asset_status(db, row.asset_id, "borrowed", expected="active"):
            raise Conflict(
                "The asset is no longer available, so the request cannot be approved.",
                reason="asset_unavailable",
            )

    logger.info("borrow request approved id=%s", request_id)
    return _result(db, request_id)


def reject_request(db: Session, request_id: int, reason: Optional[str], *, commit: bool = True) -> BorrowRequest:
    with unit_of_work(db, commit=commit, action="reject"):
        row = _load(db, request_id)
        _require_status(row, ("pending",), "reject")
        cleaned_reason = require_reason(reason)

        values = {"status": "rejected", "rejection_reason": cleaned_reason}
        if not crud.set_request_fields(db, request_id, expected=("pending",), values=values):
            raise _lost_race(db, row, "rejected")

    logger.info("borrow request rejected id=%s", request_id)
    return _result(db, request_id)


def mark_returned(
    db: Session,
    request_id: int,
    actual_return_date: Optional[date] = None,
    *,
    commit: bool = True,
) -> BorrowRequest:
    with unit_of_work(db, commit=commit, action="return"):
        row = _load(db, request_id)
        _require_status(row, ("approved",), "return")

        returned_on = actual_return_date or date.today()

        values = {"status": "returned", "actual_return_date": returned_on}
        if not crud.set_request_fields(db, request_id, expected=("approved",), values=values):
            raise _lost_race(db, row, "returned")
        if not crud.set_asset_status(db, row.asset_id, "active", expected="borrowed"):
            logger.warning("asset id=%s was not borrowed when request id=%s returned", row.asset_id, request_id)
            raise Conflict(
                "The asset is not marked as borrowed, so the return cannot be recorded.",
                reason="asset_not_borrowed",
            )

    logger.info("borrow request returned id=%s on=%s", request_id, returned_on.isoformat())
    return _result(db, request_id)


def edit_request(db: Session, request_id: int, body: BorrowEdit, *, commit: bool = True) -> BorrowRequest:
    with unit_of_work(db, commit=commit, action="edit"):
        row = _load(db, request_id)
        _require_status(row, crud.OPEN_STATUSES, "edit")

        data = body.model_dump(exclude_unset=True)
        text_fields = {k: data[k] for k in REQUIRED_TEXT_FIELDS if k in data}
        cleaned, errors = check_borrower_fields(text_fields)

        requested = data.get("requested_date") or row.requested_date
        expected = data.get("expected_return_date") or row.expected_return_date
        errors += check_dates(requested, expected)
        raise_if_errors(errors)

        values: dict = dict(cleaned)
        if "notes" in data:
            values["notes"] = sanitize_optional(data["notes"])
        if data.get("requested_date"):
            values["requested_date"] = requested
        if data.get("expected_return_date"):
            values["expected_return_date"] = expected

        if values and not crud.set_request_fields(db, request_id, expected=crud.OPEN_STATUSES, values=values):
            raise _lost_race(db, row, "edited")

    logger.info("borrow request edited id=%s fields=%s", request_id, ",".join(sorted(values)))
    return _result(db, request_id)


def delete_request(db: Session, request_id: int, *, commit: bool = True) -> None:
    with unit_of_work(db, commit=commit, action="delete"):
        row = _load(db, request_id)
        if row.status not in crud.CLOSED_STATUSES:
            raise Conflict(
                f"Borrow request {request_id} is {row.status}; only rejected or returned requests can be deleted.",
                reason="request_open",
            )
        if not crud.remove_request(db, request_id, expected=crud.CLOSED_STATUSES):
            raise _lost_race(db, row, "deleted")

    logger.info("borrow request deleted id=%s", request_id)
