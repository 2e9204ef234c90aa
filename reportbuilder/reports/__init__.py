"""Report statement orchestration, row paging and CSV export."""

from .export import export_csv
from .models import RowsPage, StatementSubmitted, SubmitStatementRequest
from .service import ReportService, StatementPager

__all__ = [
  "ReportService",
  "RowsPage",
  "StatementPager",
  "StatementSubmitted",
  "SubmitStatementRequest",
  "export_csv",
]
