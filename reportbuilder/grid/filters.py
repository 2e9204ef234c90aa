"""
In-memory filter evaluation over materialized rows.

A row passes when every column condition in the filter model holds for the
row's cell in that column. Evaluation is permissive: an unknown column, an
unrecognized filter kind or operation, or an operand that cannot be coerced
all count as a pass so that bad client input never hides data.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional

from .models import (
  COMPARISON_OPERATORS,
  TEXT_OPERATORS,
  FilterDescriptor,
  FilterKind,
  FilterModel,
  FilterOperator,
  JoinOperator,
)
from .values import cell_text, to_date, to_number

ColumnIndex = Mapping[str, int]


def index_columns(columns: Sequence[Optional[str]]) -> dict[str, int]:
  """Map column names (original case and lowercase alias) to their position."""
  index: dict[str, int] = {}
  for position, name in enumerate(columns or ()):
    if name is None:
      continue
    index[name] = position
    index.setdefault(name.lower(), position)
  return index


def resolve_column(column_index: ColumnIndex, col_id: Optional[str]) -> Optional[int]:
  if col_id is None:
    return None
  position = column_index.get(col_id)
  if position is None:
    position = column_index.get(col_id.lower())
  return position


def matches(row: Sequence[Any], filter_model: FilterModel, column_index: ColumnIndex) -> bool:
  """Return True when the row satisfies every column condition."""
  if not filter_model:
    return True
  for col_id, descriptor in filter_model.items():
    position = resolve_column(column_index, col_id)
    if position is None or position < 0 or position >= len(row):
      continue
    if not evaluate(row[position], descriptor):
      return False
  return True


def evaluate(cell: Any, descriptor: Optional[FilterDescriptor]) -> bool:
  """Evaluate one (possibly compound) condition against one cell."""
  if descriptor is None:
    return True

  if descriptor.is_compound:
    conditions = descriptor.conditions or []
    if not conditions:
      return True
    join = descriptor.join
    if join == JoinOperator.AND:
      return all(evaluate(cell, child) for child in conditions)
    if join == JoinOperator.OR:
      return any(evaluate(cell, child) for child in conditions)
    return True

  kind = descriptor.kind
  op = descriptor.op
  if kind is None or op is None:
    return True

  if kind == FilterKind.TEXT:
    return _evaluate_text(cell, op, descriptor) if op in TEXT_OPERATORS else True
  if kind == FilterKind.NUMBER:
    return _evaluate_number(cell, op, descriptor) if op in COMPARISON_OPERATORS else True
  if kind == FilterKind.DATE:
    return _evaluate_date(cell, op, descriptor) if op in COMPARISON_OPERATORS else True
  return True


def _evaluate_text(cell: Any, op: FilterOperator, descriptor: FilterDescriptor) -> bool:
  value = cell_text(cell).lower()
  query = (descriptor.filter or "").lower()

  match op:
    case FilterOperator.CONTAINS:
      return query in value
    case FilterOperator.NOT_CONTAINS:
      return query not in value
    case FilterOperator.EQUALS:
      return value == query
    case FilterOperator.NOT_EQUALS:
      return value != query
    case FilterOperator.STARTS_WITH:
      return value.startswith(query)
    case FilterOperator.ENDS_WITH:
      return value.endswith(query)
    case _:
      return True


def _compare(op: FilterOperator, value: Any, lower: Any, upper: Any) -> bool:
  """Apply a comparison operation to already-coerced, non-null values."""
  match op:
    case FilterOperator.EQUALS:
      return value == lower
    case FilterOperator.NOT_EQUALS:
      return value != lower
    case FilterOperator.GREATER_THAN:
      return value > lower
    case FilterOperator.GREATER_THAN_EQUAL:
      return value >= lower
    case FilterOperator.LESS_THAN:
      return value < lower
    case FilterOperator.LESS_THAN_EQUAL:
      return value <= lower
    case FilterOperator.IN_RANGE:
      if upper is None:
        return True
      return lower <= value <= upper
    case _:
      return True


def _evaluate_number(cell: Any, op: FilterOperator, descriptor: FilterDescriptor) -> bool:
  value = to_number(cell)
  lower = to_number(descriptor.filter)
  if value is None or lower is None:
    return True
  return _compare(op, value, lower, to_number(descriptor.filter_to))


def _evaluate_date(cell: Any, op: FilterOperator, descriptor: FilterDescriptor) -> bool:
  value = to_date(cell)
  lower = to_date(
    descriptor.date_from if descriptor.date_from is not None else descriptor.filter
  )
  if value is None or lower is None:
    return True
  return _compare(op, value, lower, to_date(descriptor.date_to))
