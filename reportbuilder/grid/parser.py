"""
Grid sort/filter payload parsing.

Parses the JSON text that client grids send for sorting and filtering into
validated models and performs light validation:

- blank or unknown payloads -> empty model
- malformed JSON, wrong shapes or unknown fields -> empty model
- optional allowed-column check (case-insensitive) drops references to
  columns the statement does not have

Parsing never raises; bad client input degrades to "no sort" / "no filter".
"""

import json
from collections.abc import Iterable
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from reportbuilder.logger import logger

from .models import (
  FilterDescriptor,
  FilterModel,
  ParsedModels,
  SortModel,
  SortModelEntry,
)

_SORT_ADAPTER = TypeAdapter(list[SortModelEntry])
_FILTER_ADAPTER = TypeAdapter(dict[str, FilterDescriptor])


def parse_sort_model(sort_json: Optional[str]) -> SortModel:
  """Parse a sort payload, keeping entries with a column id and an asc/desc direction."""
  if sort_json is None or not sort_json.strip():
    return []
  try:
    entries = _SORT_ADAPTER.validate_json(sort_json)
  except ValidationError as e:
    logger.debug(f"Ignoring unparseable sort model: {e.error_count()} error(s)")
    return []
  return [e for e in entries if e.col_id is not None and e.direction is not None]


def parse_filter_model(filter_json: Optional[str]) -> FilterModel:
  """Parse a filter payload into a column id -> condition mapping."""
  if filter_json is None or not filter_json.strip():
    return {}
  try:
    return _FILTER_ADAPTER.validate_json(filter_json)
  except ValidationError as e:
    logger.debug(f"Ignoring unparseable filter model: {e.error_count()} error(s)")
    return {}


def canonical_sort_json(sort_model: SortModel) -> str:
  entries = [
    {"colId": e.col_id, "sort": e.direction.value}
    for e in sort_model
    if e.direction is not None
  ]
  return json.dumps(entries, sort_keys=True, separators=(",", ":"))


def canonical_filter_json(filter_model: FilterModel) -> str:
  payload = {
    col_id: descriptor.model_dump(by_alias=True, exclude_none=True)
    for col_id, descriptor in filter_model.items()
  }
  return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def parse_models(
  sort_json: Optional[str],
  filter_json: Optional[str],
  allowed_column_ids: Optional[Iterable[str]] = None,
) -> ParsedModels:
  """
  Parse sort and filter payloads together.

  Args:
      sort_json: Sort payload text, e.g. ``[{"colId": "amount", "sort": "desc"}]``
      filter_json: Filter payload text keyed by column id
      allowed_column_ids: Column ids the statement exposes; when given and
          non-empty, entries for other columns are dropped

  Returns:
      ParsedModels whose canonical JSON reflects only the entries kept
  """
  sort_model = parse_sort_model(sort_json)
  filter_model = parse_filter_model(filter_json)

  allowed = {c.lower() for c in allowed_column_ids or () if c is not None}
  if allowed:
    sort_model = [e for e in sort_model if e.col_id.lower() in allowed]
    filter_model = {k: v for k, v in filter_model.items() if k.lower() in allowed}

  return ParsedModels(
    sort_model=sort_model,
    filter_model=filter_model,
    canonical_sort_json=canonical_sort_json(sort_model),
    canonical_filter_json=canonical_filter_json(filter_model),
  )
