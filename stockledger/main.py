import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stockledger.api import auth, inventory, orders, products
from stockledger.config import settings
from stockledger.database import init_db
from stockledger.exceptions import (
    DirectStockWriteError,
    ImmutableEntryError,
    InsufficientStockError,
    InvalidOperationTypeError,
    InvalidQuantityError,
    LedgerError,
    OrderNotFoundError,
    OrderStateError,
    PersistenceError,
    ProductNotFoundError,
    StockConflictError,
)
from stockledger.logging_config import setup_logging

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ProductNotFoundError: 404,
    OrderNotFoundError: 404,
    InvalidOperationTypeError: 422,
    InvalidQuantityError: 422,
    InsufficientStockError: 409,
    StockConflictError: 409,
    OrderStateError: 400,
    PersistenceError: 503,
    ImmutableEntryError: 500,
    DirectStockWriteError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Product stock and append-only inventory ledger",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Map each ledger error kind to its own status and machine-readable code."""
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"code": "server_error", "detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
