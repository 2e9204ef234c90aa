"""
API routers.
"""

from .reports import get_report_service
from .reports import router as reports_router
from .status import router as status_router

__all__ = ["get_report_service", "reports_router", "status_router"]
