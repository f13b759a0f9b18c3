import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from fastapi.templating import Jinja2Templates

# ---- test database, set before anything imports db ----
TMP_DIR = Path(tempfile.mkdtemp(prefix="lending_app_"))
os.environ["APP_DB_PATH"] = str(TMP_DIR / "test_lending.db")


@pytest.fixture(scope="session")
def app_module():
    # ---- minimal templates so the UI routes render ----
    tmpl_dir = TMP_DIR / "templates"
    tmpl_dir.mkdir(parents=True, exist_ok=True)

    (tmpl_dir / "borrow_requests.html").write_text(
        "<html><body>borrow ok ({{ records|length }})"
        "{% if message %} message: {{ message }}{% endif %}"
        "{% if error %} error: {{ error }}{% endif %}"
        "{% for r in records %} {{ r.serial_number }}:{{ r.status }}{% endfor %}"
        " pending={{ stats.pending }}</body></html>",
        encoding="utf-8",
    )
    (tmpl_dir / "borrow_edit.html").write_text(
        "<html><body>edit ok {{ record.borrower_name }} {{ record.status }}"
        "{% if error %} error: {{ error }}{% endif %}</body></html>",
        encoding="utf-8",
    )

    import main

    main.templates = Jinja2Templates(directory=str(tmpl_dir))
    main.app.state.templates = main.templates

    return main


@pytest.fixture()
def client(app_module):
    def _get_db_override():
        db = app_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[app_module.get_db] = _get_db_override
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()


@pytest.fixture()
def db_session(app_module):
    db = app_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # borrow_requests first, they reference assets
    from sqlalchemy import delete
    from orm import BorrowRequestORM, AssetORM

    db_session.execute(delete(BorrowRequestORM))
    db_session.execute(delete(AssetORM))
    db_session.commit()
    yield


@pytest.fixture()
def make_asset(db_session):
    import crud
    from models import AssetIn

    def _make(serial="AST-1", name="Dell Optiplex 3070 Desktop", status="active", department=None):
        asset = crud.create_asset(
            db_session,
            AssetIn(serial_number=serial, name=name, department=department),
        )
        if status != "active":
            crud.set_asset_status(db_session, asset.id, status)
            db_session.commit()
        return crud.get_asset(db_session, asset.id)

    return _make


@pytest.fixture()
def borrow_body():
    from models import BorrowCreate

    def _body(**overrides):
        data = {
            "asset_id": "AST-1",
            "borrower_name": "Maria Santos",
            "borrower_department": "School of Technology",
            "borrower_contact": "+63 912 345 6789",
            "borrower_email": "maria.santos@example.edu",
            "purpose": "Thesis defense presentation",
            "requested_date": "2025-01-02",
            "expected_return_date": "2025-01-09",
        }
        data.update(overrides)
        return BorrowCreate(**data)

    return _body
