from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

import crud
import lifecycle
from csv_utils import rows_to_csv_response
from dependencies import get_db
from errors import LendingError
from filter_helpers import blank_to_none, normalize_borrow_status
from models import BorrowCreate, BorrowEdit, ReturnIn

router = APIRouter()
PAGE_SIZE = 50
EXPORT_LIMIT = 20000
DATE_ERROR = "Please enter dates as YYYY-MM-DD"


def _back(*, message: Optional[str] = None, error: Optional[str] = None, url: str = "/ui/borrow") -> RedirectResponse:
    params = {k: v for k, v in (("message", message), ("error", error)) if v}
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=303)


@router.get("/ui/borrow", response_class=HTMLResponse)
def borrow_ui(
    request: Request,
    q: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    message: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if page < 1:
        page = 1

    q = blank_to_none(q)
    status = normalize_borrow_status(status)

    total = crud.count_requests(db, q=q, status=status)
    total_pages = crud.page_meta(total, limit=PAGE_SIZE, offset=0)["total_pages"]
    if page > total_pages:
        page = total_pages

    records = crud.list_requests(
        db,
        q=q,
        status=status,
        limit=PAGE_SIZE,
        offset=(page - 1) * PAGE_SIZE,
    )

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "borrow_requests.html",
        {
            "records": records,
            "stats": crud.request_stats(db),
            "q": q or "",
            "status": status or "",
            "page": page,
            "total_pages": total_pages,
            "total": total,
            "page_size": PAGE_SIZE,
            "message": message,
            "error": error,
        },
    )


@router.post("/ui/borrow")
def create_borrow_ui(
    asset_id: str = Form(...),
    borrower_name: str = Form(...),
    borrower_department: str = Form(...),
    borrower_contact: str = Form(...),
    borrower_email: str = Form(...),
    purpose: str = Form(...),
    expected_return_date: str = Form(...),
    requested_date: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        body = BorrowCreate(
            asset_id=asset_id,
            borrower_name=borrower_name,
            borrower_department=borrower_department,
            borrower_contact=borrower_contact,
            borrower_email=borrower_email,
            purpose=purpose,
            expected_return_date=expected_return_date,
            requested_date=blank_to_none(requested_date),
            notes=notes,
        )
    except SchemaError:
        return _back(error=DATE_ERROR)

    try:
        created = lifecycle.create_request(db, body)
    except LendingError as exc:
        return _back(error=exc.message)
    return _back(message=f"Borrow request {created.id} submitted ({created.borrower_id}).")


@router.post("/ui/borrow/{request_id}/approve")
def approve_borrow_ui(request_id: int, db: Session = Depends(get_db)):
    try:
        lifecycle.approve_request(db, request_id)
    except LendingError as exc:
        return _back(error=exc.message)
    return _back(message=f"Borrow request {request_id} approved.")


@router.post("/ui/borrow/{request_id}/reject")
def reject_borrow_ui(
    request_id: int,
    reason: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        lifecycle.reject_request(db, request_id, reason)
    except LendingError as exc:
        return _back(error=exc.message)
    return _back(message=f"Borrow request {request_id} rejected.")


@router.post("/ui/borrow/{request_id}/return")
def return_borrow_ui(
    request_id: int,
    actual_return_date: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        returned_on = ReturnIn(actual_return_date=blank_to_none(actual_return_date)).actual_return_date
    except SchemaError:
        return _back(error=DATE_ERROR)

    try:
        lifecycle.mark_returned(db, request_id, returned_on)
    except LendingError as exc:
        return _back(error=exc.message)
    return _back(message=f"Borrow request {request_id} marked as returned.")


@router.post("/ui/borrow/{request_id}/delete")
def delete_borrow_ui(request_id: int, db: Session = Depends(get_db)):
    try:
        lifecycle.delete_request(db, request_id)
    except LendingError as exc:
        return _back(error=exc.message)
    return _back(message=f"Borrow request {request_id} deleted.")


@router.get("/ui/borrow/export")
def export_borrow_ui(
    q: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    records = crud.list_requests(
        db,
        q=blank_to_none(q),
        status=normalize_borrow_status(status),
        limit=EXPORT_LIMIT,
        offset=0,
    )
    return rows_to_csv_response(records, filename="borrow_requests.csv")


@router.get("/ui/borrow/{request_id}/edit", response_class=HTMLResponse)
def edit_borrow_form_ui(
    request: Request,
    request_id: int,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    record = lifecycle.get_request(db, request_id)

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "borrow_edit.html",
        {"record": record, "error": error},
    )


@router.post("/ui/borrow/{request_id}/edit")
def edit_borrow_ui(
    request_id: int,
    borrower_name: str = Form(...),
    borrower_department: str = Form(...),
    borrower_contact: str = Form(...),
    borrower_email: str = Form(...),
    purpose: str = Form(...),
    requested_date: str = Form(...),
    expected_return_date: str = Form(...),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    edit_url = f"/ui/borrow/{request_id}/edit"
    try:
        body = BorrowEdit(
            borrower_name=borrower_name,
            borrower_department=borrower_department,
            borrower_contact=borrower_contact,
            borrower_email=borrower_email,
            purpose=purpose,
            requested_date=requested_date,
            expected_return_date=expected_return_date,
            notes=notes,
        )
    except SchemaError:
        return _back(error=DATE_ERROR, url=edit_url)

    try:
        lifecycle.edit_request(db, request_id, body)
    except LendingError as exc:
        return _back(error=exc.message, url=edit_url)
    return _back(message=f"Borrow request {request_id} updated.")
