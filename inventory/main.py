# inventory/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inventory.bootstrap import Inventory, open_inventory
from inventory.config import get_settings
from inventory.errors import BackendError, NotFoundError, ValidationError

load_dotenv()

# Import routers
from inventory.routes.images import router as images_router
from inventory.routes.products import router as products_router
from inventory.routes.stats import router as stats_router
from inventory.routes.transfer import router as transfer_router

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(inventory: Optional[Inventory] = None) -> FastAPI:
    """Build the API. Without an inventory the configured backend is opened at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "inventory", None) is None
        if owned:
            app.state.inventory = open_inventory()
        yield
        if owned:
            app.state.inventory.close()
            app.state.inventory = None

    app = FastAPI(title="Inventory Catalog API", version="1.0.0", lifespan=lifespan)
    app.state.inventory = inventory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error mapping
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "problems": exc.problems})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        logger.error("Backend failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # Register routers
    app.include_router(products_router)
    app.include_router(images_router)
    app.include_router(stats_router)
    app.include_router(transfer_router)

    @app.get("/")
    def read_root():
        return {"message": "Inventory Catalog API is running"}

    return app


configure_logging()
app = create_app()
