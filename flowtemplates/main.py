"""
ASGI entry point of the process template service.

    uvicorn flowtemplates.main:app
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowtemplates.api.v1 import templates
from flowtemplates.config import settings
from flowtemplates.database import close_db, init_db
from flowtemplates.logging_config import get_logger, setup_logging
from flowtemplates.middleware.error_handler import register_exception_handlers
from flowtemplates.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

setup_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)
logger = get_logger(__name__)

API_DESCRIPTION = """
Project-scoped process templates: DAGs of task nodes that the scheduler turns
into process instances.

* preTasks precedence is checked to be acyclic, and every node's params are
  checked against its task type (SHELL, SQL, SUB_PROCESS, SPARK, HTTP, ...)
* templates are exported as portable JSON bundles and imported into other
  projects, sub-process templates included

The acting user is read from the `X-User-Id`, `X-User-Name` and
`X-User-Admin` headers set by the gateway.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Process template service starting", version=settings.APP_VERSION)
    await init_db()
    yield
    await close_db()
    logger.info("Process template service stopped")


def create_app() -> FastAPI:
    docs_enabled = settings.DEBUG
    application = FastAPI(
        title=settings.APP_NAME,
        description=API_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        openapi_tags=[{"name": "Templates", "description": "Template lifecycle, export and import"}],
    )

    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER, "X-User-Id", "X-User-Name", "X-User-Admin"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    register_exception_handlers(application)

    @application.get("/", include_in_schema=False)
    async def service_info():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    application.include_router(templates.router, prefix="/api/v1", tags=["Templates"])
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flowtemplates.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
