import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tournex.api.endpoints import matches as match_endpoints
from tournex.api.endpoints import notifications as notification_endpoints
from tournex.api.endpoints import realtime as realtime_endpoints
from tournex.api.endpoints import tournaments as tournament_endpoints
from tournex.api.endpoints import users as user_endpoints
from tournex.core.config import settings
from tournex.core.database import init_db
from tournex.core.exceptions import TournexError
from tournex.core.logging_config import configure_logging
from tournex.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logger.info("Tournex API started")
    yield


app = FastAPI(title="Tournex API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TournexError)
async def tournex_error_handler(request: Request, exc: TournexError):
    body = ErrorResponse(message=exc.message, errors=exc.errors)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    body = ErrorResponse(message="Validation failed", errors=errors)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    body = ErrorResponse(message="Internal server error")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


# Include routers
app.include_router(user_endpoints.router, prefix="/users", tags=["Users"])
app.include_router(tournament_endpoints.router, prefix="/tournaments", tags=["Tournaments"])
app.include_router(match_endpoints.router, prefix="/matches", tags=["Matches"])
app.include_router(notification_endpoints.router, prefix="/notifications", tags=["Notifications"])
app.include_router(realtime_endpoints.router, tags=["Realtime"])


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("tournex.main:app", host="0.0.0.0", port=8000, reload=True)
