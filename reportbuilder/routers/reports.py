"""
Report statement endpoints.

Submit a statement, read its meta, page through its rows (optionally sorted
and filtered by grid models), evict it and export it as CSV.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi import status as http_status
from fastapi.responses import StreamingResponse

from ..logger import api_logger as logger
from ..models import ErrorResponse
from ..reports import (
  ReportService,
  RowsPage,
  StatementSubmitted,
  SubmitStatementRequest,
  export_csv,
)

DEFAULT_STATEMENT = "SELECT 1"

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def get_report_service(request: Request) -> ReportService:
  """Report service created at application startup."""
  service = getattr(request.app.state, "report_service", None)
  if service is None:
    raise HTTPException(
      status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
      detail="Report service is not initialized",
    )
  return service


def _require_statement_id(statement_id: Optional[str]) -> str:
  if statement_id is None or not statement_id.strip():
    raise HTTPException(
      status_code=http_status.HTTP_400_BAD_REQUEST,
      detail="statementId must not be blank",
    )
  return statement_id.strip()


@router.post(
  "/statement",
  response_model=StatementSubmitted,
  operation_id="submitStatement",
  summary="Submit Statement",
  description="Submit SQL for asynchronous execution and start caching its results.",
  responses={502: {"description": "Upstream engine failure", "model": ErrorResponse}},
)
async def submit_statement(
  body: Optional[SubmitStatementRequest] = Body(None),
  scope: Optional[str] = Query(None, description="Cache namespace"),
  service: ReportService = Depends(get_report_service),
) -> StatementSubmitted:
  sql = body.sql if body and body.sql and body.sql.strip() else DEFAULT_STATEMENT
  return await service.submit(sql, scope=scope)


@router.get(
  "/meta",
  operation_id="getStatementMeta",
  summary="Statement Meta",
  description="Columns, page size, row count and lifecycle state of a statement.",
  responses={400: {"description": "Blank statement id", "model": ErrorResponse}},
)
async def get_statement_meta(
  statement_id: Optional[str] = Query(None, alias="statementId"),
  scope: Optional[str] = Query(None, description="Cache namespace"),
  service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
  return await service.get_statement_meta(
    _require_statement_id(statement_id), scope=scope
  )


@router.get(
  "",
  response_model=RowsPage,
  operation_id="getStatementRows",
  summary="Statement Rows",
  description="""Rows `[startRow, endRow)` of a statement.

When `sortModel` or `filterModel` is given the rows come from a derived view
that is built on first request and cached. An empty page with a null
`lastRow` means the rows are not available yet.""",
  responses={400: {"description": "Invalid request", "model": ErrorResponse}},
)
async def get_rows(
  statement_id: Optional[str] = Query(None, alias="statementId"),
  start_row: int = Query(..., alias="startRow"),
  end_row: int = Query(..., alias="endRow"),
  sort_model: Optional[str] = Query(None, alias="sortModel"),
  filter_model: Optional[str] = Query(None, alias="filterModel"),
  scope: Optional[str] = Query(None, description="Cache namespace"),
  service: ReportService = Depends(get_report_service),
) -> RowsPage:
  return await service.get_rows(
    _require_statement_id(statement_id),
    start_row,
    end_row,
    sort_json=sort_model,
    filter_json=filter_model,
    scope=scope,
  )


@router.delete(
  "",
  status_code=http_status.HTTP_204_NO_CONTENT,
  operation_id="evictStatement",
  summary="Evict Statement",
  description="Remove a statement's cached meta and pages.",
)
async def evict_statement(
  statement_id: Optional[str] = Query(None, alias="statementId"),
  scope: Optional[str] = Query(None, description="Cache namespace"),
  service: ReportService = Depends(get_report_service),
) -> None:
  statement_id = _require_statement_id(statement_id)
  deleted = await service.evict(statement_id, scope=scope)
  logger.info(f"Evicted statement {statement_id}: {deleted} key(s) removed")


@router.get(
  "/export/csv",
  response_class=StreamingResponse,
  operation_id="exportStatementCsv",
  summary="Export CSV",
  description="Stream a statement's rows as CSV, optionally sorted and filtered.",
)
async def export_statement_csv(
  statement_id: Optional[str] = Query(None, alias="statementId"),
  header: bool = Query(True, description="Include a header row"),
  bom: bool = Query(False, description="Prefix a UTF-8 byte order mark"),
  sort_model: Optional[str] = Query(None, alias="sortModel"),
  filter_model: Optional[str] = Query(None, alias="filterModel"),
  scope: Optional[str] = Query(None, description="Cache namespace"),
  service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
  statement_id = _require_statement_id(statement_id)
  content = export_csv(
    service,
    statement_id,
    header=header,
    bom=bom,
    sort_json=sort_model,
    filter_json=filter_model,
    scope=scope,
  )
  return StreamingResponse(
    content,
    media_type="text/csv",
    headers={"Content-Disposition": f'attachment; filename="{statement_id}.csv"'},
  )
