"""Cached metadata records for statements and derived views."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _optional_int(value: Any) -> Optional[int]:
  if value is None or isinstance(value, bool):
    return None
  try:
    return int(value)
  except (TypeError, ValueError):
    return None


@dataclass
class StatementMeta:
  """
  Metadata for one statement's base result.

  Stored as a JSON object with camelCase keys (``pageSize``, ``rowCount``,
  ``columns``, ``schema``, ``state``) next to the statement's pages.
  """

  page_size: Optional[int] = None
  row_count: Optional[int] = None
  columns: Optional[List[str]] = None
  schema: Optional[List[Dict[str, Any]]] = None
  state: Optional[str] = None

  def to_dict(self) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if self.page_size is not None:
      data["pageSize"] = self.page_size
    if self.row_count is not None:
      data["rowCount"] = self.row_count
    if self.columns is not None:
      data["columns"] = self.columns
    if self.schema is not None:
      data["schema"] = self.schema
    if self.state is not None:
      data["state"] = self.state
    return data

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "StatementMeta":
    columns = data.get("columns")
    schema = data.get("schema")
    state = data.get("state")
    return cls(
      page_size=_optional_int(data.get("pageSize")),
      row_count=_optional_int(data.get("rowCount")),
      columns=[str(c) for c in columns] if isinstance(columns, list) else None,
      schema=schema if isinstance(schema, list) else None,
      state=state if isinstance(state, str) else None,
    )


@dataclass
class ViewMeta:
  """Metadata for one sorted/filtered view of a base statement."""

  base_statement_id: str
  signature: str
  page_size: Optional[int] = None
  row_count: Optional[int] = None
  chunk_count: Optional[int] = None
  type: str = field(default="view")

  def to_dict(self) -> Dict[str, Any]:
    data: Dict[str, Any] = {
      "type": self.type,
      "baseStatementId": self.base_statement_id,
      "sig": self.signature,
    }
    if self.page_size is not None:
      data["pageSize"] = self.page_size
    if self.row_count is not None:
      data["rowCount"] = self.row_count
    if self.chunk_count is not None:
      data["chunkCount"] = self.chunk_count
    return data

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "ViewMeta":
    return cls(
      base_statement_id=str(data.get("baseStatementId", "")),
      signature=str(data.get("sig", "")),
      page_size=_optional_int(data.get("pageSize")),
      row_count=_optional_int(data.get("rowCount")),
      chunk_count=_optional_int(data.get("chunkCount")),
    )
