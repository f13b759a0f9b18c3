from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

import logging
import time

from db import Base, SessionLocal, engine, ROOT_DIR, LOG_LEVEL
from dependencies import get_db
from errors import LendingError, StorageError, UnexpectedError
from routers import ALL_ROUTERS

app = FastAPI(title="Asset Lending API")
templates = Jinja2Templates(directory=str(ROOT_DIR / "templates"))
app.state.templates = templates

Base.metadata.create_all(bind=engine)

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response

# -----------------------
# Errors
# -----------------------
@app.exception_handler(LendingError)
async def lending_error_handler(request: Request, exc: LendingError):
    if exc.status_code >= 500:
        logger.error("path=%s reason=%s message=%s", request.url.path, exc.reason, exc.message)
    return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg', '')}"
        for e in exc.errors()
    ]
    content = {
        "message": "Incomplete data. Required fields missing.",
        "reason": "invalid_request",
        "errors": errors,
    }
    return JSONResponse(content=content, status_code=400)

@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("storage failure path=%s", request.url.path, exc_info=exc)
    err = StorageError("The service could not reach its database. Please try again.")
    return JSONResponse(content=err.to_dict(), status_code=err.status_code)

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled exception path=%s", request.url.path, exc_info=exc)
    err = UnexpectedError("An unexpected error occurred.")
    return JSONResponse(content=err.to_dict(), status_code=err.status_code)

for router in ALL_ROUTERS:
    app.include_router(router)

@app.get("/")
def root():
    return {"message": "Asset Lending API", "docs": "/docs", "ui": "/ui/borrow"}

