import csv
import html
import io
from typing import Iterable, Any, Sequence, Callable, Optional
from fastapi.responses import StreamingResponse

def _text(value: Any) -> str:
    # stored free text is HTML-escaped; spreadsheets want the plain characters
    if value is None:
        return ""
    return html.unescape(str(value))

def _iso(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)

DEFAULT_BORROW_COLUMNS: Sequence[tuple[str, Callable[[Any], str]]] = (
    ("id", lambda r: str(getattr(r, "id", ""))),
    ("serial_number", lambda r: _text(getattr(r, "serial_number", ""))),
    ("asset_name", lambda r: _text(getattr(r, "asset_name", None))),
    ("borrower_id", lambda r: _text(getattr(r, "borrower_id", ""))),
    ("borrower_name", lambda r: _text(getattr(r, "borrower_name", ""))),
    ("borrower_department", lambda r: _text(getattr(r, "borrower_department", ""))),
    ("borrower_email", lambda r: _text(getattr(r, "borrower_email", ""))),
    ("borrower_contact", lambda r: _text(getattr(r, "borrower_contact", ""))),
    ("requested_date", lambda r: _iso(getattr(r, "requested_date", None))),
    ("expected_return_date", lambda r: _iso(getattr(r, "expected_return_date", None))),
    ("actual_return_date", lambda r: _iso(getattr(r, "actual_return_date", None))),
    ("status", lambda r: str(getattr(r, "status", ""))),
    ("purpose", lambda r: _text(getattr(r, "purpose", ""))),
    ("rejection_reason", lambda r: _text(getattr(r, "rejection_reason", None))),
    ("notes", lambda r: _text(getattr(r, "notes", None))),
)

def rows_to_csv_response(
    rows: Iterable[Any],
    *,
    filename: str = "borrow_requests.csv",
    columns: Optional[Sequence[tuple[str, Callable[[Any], str]]]] = None,
) -> StreamingResponse:
    """
    Stream ``rows`` as a CSV download.
    Any object with attribute access works (ORM rows or pydantic models).
    """

    if columns is None:
        columns = DEFAULT_BORROW_COLUMNS

    def generate():
        buf = io.StringIO()
        w = csv.writer(buf)

        w.writerow([h for h, _ in columns])
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for r in rows:
            w.writerow([getter(r) for _, getter in columns])
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(generate(), media_type="text/csv; charset=utf-8", headers=headers)
