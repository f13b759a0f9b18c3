from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

import crud
import lifecycle
from dependencies import get_db
from filter_helpers import (
    blank_to_none,
    normalize_borrow_status,
    normalize_limit,
    normalize_offset,
)
from models import (
    BorrowCreate,
    BorrowCreated,
    BorrowEdit,
    BorrowMeta,
    BorrowRecords,
    BorrowRequest,
    BorrowStats,
    RejectIn,
    ReturnIn,
)

router = APIRouter()


@router.post("/borrow", response_model=BorrowCreated, status_code=201)
def create_borrow_api(
    body: BorrowCreate,
    db: Session = Depends(get_db),
):
    return lifecycle.create_request(db, body)


@router.get("/borrow", response_model=BorrowRecords)
def list_borrow_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    records = crud.list_requests(
        db,
        q=blank_to_none(q),
        status=normalize_borrow_status(status),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )
    return BorrowRecords(records=records)


@router.get("/borrow/meta", response_model=BorrowMeta)
def borrow_meta_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    total = crud.count_requests(db, q=blank_to_none(q), status=normalize_borrow_status(status))
    return BorrowMeta(**crud.page_meta(total, limit=limit, offset=offset))


@router.get("/borrow/stats", response_model=BorrowStats)
def borrow_stats_api(db: Session = Depends(get_db)):
    return BorrowStats(**crud.request_stats(db))


@router.get("/borrow/{request_id}", response_model=BorrowRequest)
def get_borrow_api(request_id: int, db: Session = Depends(get_db)):
    return lifecycle.get_request(db, request_id)


@router.patch("/borrow/{request_id}", response_model=BorrowRequest)
def edit_borrow_api(
    request_id: int,
    body: BorrowEdit,
    db: Session = Depends(get_db),
):
    return lifecycle.edit_request(db, request_id, body)


@router.post("/borrow/{request_id}/approve", response_model=BorrowRequest)
def approve_borrow_api(request_id: int, db: Session = Depends(get_db)):
    return lifecycle.approve_request(db, request_id)


@router.post("/borrow/{request_id}/reject", response_model=BorrowRequest)
def reject_borrow_api(
    request_id: int,
    body: RejectIn,
    db: Session = Depends(get_db),
):
    return lifecycle.reject_request(db, request_id, body.reason)


@router.post("/borrow/{request_id}/return", response_model=BorrowRequest)
def return_borrow_api(
    request_id: int,
    body: Optional[ReturnIn] = None,
    db: Session = Depends(get_db),
):
    actual = body.actual_return_date if body else None
    return lifecycle.mark_returned(db, request_id, actual)


@router.delete("/borrow/{request_id}", status_code=204)
def delete_borrow_api(request_id: int, db: Session = Depends(get_db)):
    lifecycle.delete_request(db, request_id)
    return Response(status_code=204)
