"""Request and response models for report statements and row pages."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitStatementRequest(ReportModel):
  """Body of a statement submission."""

  sql: Optional[str] = Field(default=None, description="Statement text")


class StatementSubmitted(ReportModel):
  statement_id: str = Field(..., description="Upstream statement id")
  page_size: int = Field(..., description="Rows per cached page")


class RowsPage(ReportModel):
  """
  One row-range answer.

  ``last_row`` is the total row count when known. An empty page with an
  unknown total means the data is not available yet.
  """

  rows: List[List[Any]] = Field(default_factory=list)
  last_row: Optional[int] = Field(default=None, description="Total row count, if known")
