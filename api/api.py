import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR
import uvicorn

from api.config import Settings, build_store, create_db
from api.routes.path_routes import path_routes
from api.utils.logger import clear_request_id, configure_logging, set_request_id
from learning_paths.errors import (
    Conflict,
    DeadlineExceeded,
    InvalidPathLayout,
    InvalidTransition,
    NotFound,
    PathError,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

# Most specific class first; lookup walks the exception's MRO.
ERROR_STATUS: dict[type, int] = {
    NotFound: 404,
    Conflict: 409,
    InvalidTransition: 409,
    InvalidPathLayout: 400,
    DeadlineExceeded: 504,
    StoreUnavailable: 503,
}


def status_for(exc: PathError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Optional[Settings] = None, store=None) -> FastAPI:
    """
    Build the API around an injected store handle. Without one, a SqlStore is
    built from settings and its tables are created at startup.
    """
    settings = settings or Settings()
    configure_logging(log_dir=settings.log_dir, log_file=settings.log_file, level=settings.log_level)
    owns_store = store is None
    store = store if store is not None else build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store:
            create_db(store)
        yield
        if owns_store:
            store.engine.dispose()

    app = FastAPI(title="Learning Paths API", version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        rid = set_request_id(request.headers.get("x-request-id"))
        try:
            logger.info("request start method=%s path=%s client=%s", request.method, request.url.path, request.client)
            response: Response = await call_next(request)
            logger.info("request end status=%s method=%s path=%s", response.status_code, request.method, request.url.path)
            response.headers["x-request-id"] = rid
            return response
        except Exception:
            logger.exception("request error method=%s path=%s", request.method, request.url.path)
            raise
        finally:
            clear_request_id()

    @app.exception_handler(PathError)
    async def path_error_handler(request: Request, exc: PathError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(
                "store error status=%s method=%s path=%s error=%s",
                status, request.method, request.url.path, exc,
                exc_info=exc,
            )
            detail = "Store unavailable" if status == 503 else "Store deadline exceeded"
        else:
            logger.warning("path error status=%s method=%s path=%s detail=%s", status, request.method, request.url.path, exc)
            detail = str(exc)
        return JSONResponse(status_code=status, content={"detail": detail, "error": type(exc).__name__})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("http error status=%s method=%s path=%s detail=%s", exc.status_code, request.method, request.url.path, exc.detail)
        else:
            logger.warning("http error status=%s method=%s path=%s detail=%s", exc.status_code, request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("validation error method=%s path=%s errors=%s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        # Never leak internal exception details to clients.
        logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )

    @app.get("/")
    def read_root():
        return {"message": "Learning Paths API is Healthy"}

    @app.get("/health")
    def health():
        return {"status": "ok", "version": settings.app_version}

    app.include_router(path_routes, prefix="/api")
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
