from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.v1.router import router as v1_router
from backend.app.core.log_config import configure_logging
from backend.services.errors import (
    AtelierError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)

configure_logging()

STATUS_BY_ERROR = {
    ValidationError: 400,
    InsufficientStockError: 400,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    ConflictError: 409,
    PersistenceError: 500,
}

app = FastAPI(title="ATELIER ORDERS", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(AtelierError)
async def atelier_error_handler(request: Request, exc: AtelierError):
    status_code = STATUS_BY_ERROR.get(type(exc), 500)
    return JSONResponse(status_code=status_code, content=exc.to_dict())
