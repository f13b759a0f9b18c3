from .assets_api import router as assets_api_router
from .borrow_api import router as borrow_api_router
from .borrow_ui import router as borrow_ui_router

ALL_ROUTERS = (
    assets_api_router,
    borrow_api_router,
    borrow_ui_router,
)
