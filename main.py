"""Report Builder Service API main application module."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reportbuilder.cache import ResultCache, ViewCache
from reportbuilder.config import env
from reportbuilder.config.logging import get_logger
from reportbuilder.exceptions import (
  InvalidRowRangeError,
  ReportBuilderError,
  StatementSubmissionError,
)
from reportbuilder.reports import ReportService
from reportbuilder.routers import reports_router, status_router
from reportbuilder.routers.status import get_app_version
from reportbuilder.upstream import StatementAPIError, StatementClient

logger = get_logger("reportbuilder.api")


def build_report_service() -> ReportService:
  """Wire the statement client and caches from environment configuration."""
  env.validate_upstream()
  return ReportService(
    client=StatementClient(),
    results=ResultCache(),
    views=ViewCache(),
  )


def create_app(report_service: Optional[ReportService] = None) -> FastAPI:
  """
  Create the FastAPI app and include the routers.

  Args:
      report_service: Pre-built service; when None one is built from the
          environment on startup

  Returns:
      FastAPI: The configured FastAPI application.
  """
  app = FastAPI(
    title="Report Builder API",
    version=get_app_version(),
    description="Statement result caching, paging and derived views for report grids",
    openapi_url="/openapi.json",
  )

  app.state.current_time = datetime.now(timezone.utc)
  app.state.report_service = report_service

  @app.on_event("startup")
  async def startup_event():
    """Validate configuration and build the report service."""
    logger.info("Starting Report Builder API...")
    if app.state.report_service is None:
      app.state.report_service = build_report_service()
      logger.info(
        f"Report service ready: page size {app.state.report_service.page_size}, "
        f"chunk TTL {env.REDIS_CHUNK_TTL}s, view TTL {env.REDIS_VIEW_TTL}s"
      )
    logger.info("Report Builder API startup complete")

  @app.on_event("shutdown")
  async def shutdown_event():
    """Stop streaming statements and close connections."""
    logger.info("Shutting down Report Builder API...")
    service = app.state.report_service
    if service is not None:
      await service.client.close()
      await service.results.close()
      await service.views.close()
    logger.info("Report Builder API shutdown complete")

  app.add_middleware(
    CORSMiddleware,
    allow_origins=env.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Accept", "Content-Type", "Authorization"],
    expose_headers=["Content-Disposition"],
    max_age=3600,
  )

  @app.exception_handler(ReportBuilderError)
  async def report_error_handler(request: Request, exc: ReportBuilderError) -> JSONResponse:
    """Render application errors with their error code and details."""
    if isinstance(exc, InvalidRowRangeError):
      status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StatementSubmissionError):
      status_code = status.HTTP_502_BAD_GATEWAY
    else:
      status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())

  @app.exception_handler(StatementAPIError)
  async def upstream_error_handler(request: Request, exc: StatementAPIError) -> JSONResponse:
    """Upstream engine failures surface as 502 Bad Gateway."""
    logger.error(
      f"Upstream engine error on {request.method} {request.url.path}: "
      f"{exc} (status {exc.status_code})"
    )
    return JSONResponse(
      status_code=status.HTTP_502_BAD_GATEWAY,
      content={"detail": str(exc), "code": "UPSTREAM_ERROR"},
    )

  @app.exception_handler(Exception)
  async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unhandled errors server-side and return a generic message."""
    if isinstance(exc, HTTPException):
      return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    logger.error(
      f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc
    )
    return JSONResponse(
      status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
      content={"detail": "Internal server error"},
    )

  app.include_router(status_router)
  app.include_router(reports_router)

  return app


app = create_app()


if __name__ == "__main__":
  import uvicorn

  uvicorn.run("main:app", host=env.HOST, port=env.PORT, reload=env.is_development())
