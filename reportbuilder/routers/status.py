"""
Unprotected status endpoint for load balancers and monitoring.
"""

from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter, Request

from ..models import HealthStatus

router = APIRouter(tags=["Status"])


def get_app_version() -> str:
  """Get the application version from installed package metadata."""
  try:
    return version("reportbuilder")
  except PackageNotFoundError:
    return "unknown"


@router.get(
  "/status",
  response_model=HealthStatus,
  operation_id="getServiceStatus",
  summary="Health Check",
  description="Service health check endpoint for monitoring and load balancers",
)
async def service_status(request: Request) -> HealthStatus:
  details = {"service": "reportbuilder-api", "version": get_app_version()}

  service = getattr(request.app.state, "report_service", None)
  if service is not None:
    details["active_streams"] = len(service.client.active_streams)

  return HealthStatus(
    status="healthy",
    timestamp=datetime.now(UTC),
    details=details,
  )
