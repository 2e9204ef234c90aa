"""
CSV export of cached statement results.

Rows are pulled from the report service in page-sized blocks and rendered as
RFC 4180 style CSV with CRLF line endings.
"""

from collections.abc import AsyncIterator, Sequence
from typing import Any, List, Optional

from ..grid.values import cell_text
from ..logger import logger
from .service import ReportService

UTF8_BOM = "\ufeff"
CRLF = "\r\n"

_QUOTE_TRIGGERS = (",", '"', "\n", "\r")


def quote_csv(value: Optional[str]) -> str:
  """Quote a field containing a comma, quote or line break; double inner quotes."""
  text = value or ""
  if any(trigger in text for trigger in _QUOTE_TRIGGERS):
    return '"' + text.replace('"', '""') + '"'
  return text


def csv_line(values: Sequence[Optional[str]]) -> str:
  return ",".join(quote_csv(v) for v in values) + CRLF


def row_values(row: Sequence[Any], width: int) -> List[str]:
  """Render one row as ``width`` text fields; short rows are padded with blanks."""
  if width <= 0:
    width = len(row)
  return [cell_text(row[i]) if i < len(row) else "" for i in range(width)]


async def export_csv(
  service: ReportService,
  statement_id: str,
  header: bool = True,
  bom: bool = False,
  sort_json: Optional[str] = None,
  filter_json: Optional[str] = None,
  scope: Optional[str] = None,
) -> AsyncIterator[str]:
  """
  Stream a statement's rows as CSV text, one block of rows at a time.

  Args:
      service: Report service to read rows from
      statement_id: Upstream statement id
      header: Emit the column names as the first line
      bom: Prefix the output with a UTF-8 byte order mark
      sort_json: Optional grid sort payload
      filter_json: Optional grid filter payload
      scope: Cache namespace

  Yields:
      CSV text chunks
  """
  meta = await service.get_statement_meta(statement_id, scope=scope)
  columns = [str(c) for c in meta.get("columns") or []]
  page_size = meta.get("pageSize") or service.page_size
  row_count = meta.get("rowCount")

  if bom:
    yield UTF8_BOM
  if header and columns:
    yield csv_line(columns)

  start = 0
  exported = 0
  while True:
    end = start + page_size
    page = await service.get_rows(
      statement_id, start, end, sort_json=sort_json, filter_json=filter_json, scope=scope
    )
    if not page.rows:
      break

    yield "".join(csv_line(row_values(row, len(columns))) for row in page.rows)
    exported += len(page.rows)

    start = end
    if row_count is not None and start >= row_count:
      break

  logger.info(f"Exported {exported} row(s) of statement {statement_id} as CSV")
