"""
Grid sort and filter models.

Client grids send their sort state as an ordered array of
``{colId, sort}`` entries and their filter state as a mapping of column id
to either a leaf condition ``{filterType, type, filter, filterTo, dateFrom,
dateTo}`` or a compound node ``{operator, conditions}``. These models accept
exactly those shapes; anything else fails validation and is discarded by the
parser.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Cells are plain JSON scalars as delivered by the statement engine
Cell = None | bool | int | float | str
Row = list[Cell]


class SortDirection(str, Enum):
  ASC = "asc"
  DESC = "desc"


class FilterKind(str, Enum):
  """Leaf filter families."""

  TEXT = "text"
  NUMBER = "number"
  DATE = "date"

  @classmethod
  def parse(cls, raw: Optional[str]) -> Optional["FilterKind"]:
    """Case-insensitive lookup; None for anything unrecognized."""
    if raw is None:
      return None
    return _KIND_LOOKUP.get(raw.lower())


class FilterOperator(str, Enum):
  """Leaf filter operations across all kinds."""

  CONTAINS = "contains"
  NOT_CONTAINS = "notContains"
  EQUALS = "equals"
  NOT_EQUALS = "notEquals"
  STARTS_WITH = "startsWith"
  ENDS_WITH = "endsWith"
  GREATER_THAN = "greaterThan"
  GREATER_THAN_EQUAL = "greaterThanEqual"
  LESS_THAN = "lessThan"
  LESS_THAN_EQUAL = "lessThanEqual"
  IN_RANGE = "inRange"

  @classmethod
  def parse(cls, raw: Optional[str]) -> Optional["FilterOperator"]:
    """Case-insensitive lookup; None for anything unrecognized."""
    if raw is None:
      return None
    return _OPERATOR_LOOKUP.get(raw.lower())


class JoinOperator(str, Enum):
  """Compound filter joins."""

  AND = "AND"
  OR = "OR"

  @classmethod
  def parse(cls, raw: Optional[str]) -> Optional["JoinOperator"]:
    if raw is None:
      return None
    return _JOIN_LOOKUP.get(raw.upper())


_KIND_LOOKUP = {kind.value: kind for kind in FilterKind}
_OPERATOR_LOOKUP = {op.value.lower(): op for op in FilterOperator}
_JOIN_LOOKUP = {join.value: join for join in JoinOperator}

TEXT_OPERATORS = frozenset(
  {
    FilterOperator.CONTAINS,
    FilterOperator.NOT_CONTAINS,
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.STARTS_WITH,
    FilterOperator.ENDS_WITH,
  }
)

COMPARISON_OPERATORS = frozenset(
  {
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.GREATER_THAN,
    FilterOperator.GREATER_THAN_EQUAL,
    FilterOperator.LESS_THAN,
    FilterOperator.LESS_THAN_EQUAL,
    FilterOperator.IN_RANGE,
  }
)


class GridModel(BaseModel):
  """Shared configuration for client grid payloads."""

  model_config = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
    coerce_numbers_to_str=True,
  )


class SortModelEntry(GridModel):
  """One sort key: column id and direction."""

  col_id: Optional[str] = None
  sort: Optional[str] = None

  @property
  def direction(self) -> Optional[SortDirection]:
    if self.sort is None:
      return None
    try:
      return SortDirection(self.sort.lower())
    except ValueError:
      return None

  @property
  def is_asc(self) -> bool:
    return self.direction == SortDirection.ASC


class FilterDescriptor(GridModel):
  """
  A single column filter condition.

  Leaf conditions use ``filter_type``/``type`` with one or two operands;
  compound conditions carry ``operator`` and a list of child ``conditions``.
  """

  filter_type: Optional[str] = None
  type: Optional[str] = None
  filter: Optional[str] = None
  filter_to: Optional[str] = None
  date_from: Optional[str] = None
  date_to: Optional[str] = None
  operator: Optional[str] = None
  conditions: Optional[list["FilterDescriptor"]] = Field(default=None)

  @field_validator("operator")
  @classmethod
  def _normalize_operator(cls, value: Optional[str]) -> Optional[str]:
    return value.upper() if value is not None else None

  @property
  def is_compound(self) -> bool:
    return self.operator is not None and self.conditions is not None

  @property
  def kind(self) -> Optional[FilterKind]:
    return FilterKind.parse(self.filter_type)

  @property
  def op(self) -> Optional[FilterOperator]:
    return FilterOperator.parse(self.type)

  @property
  def join(self) -> Optional[JoinOperator]:
    return JoinOperator.parse(self.operator)


FilterDescriptor.model_rebuild()


SortModel = list[SortModelEntry]
FilterModel = dict[str, FilterDescriptor]


@dataclass
class ParsedModels:
  """Validated sort/filter models plus their canonical JSON text."""

  sort_model: SortModel = field(default_factory=list)
  filter_model: FilterModel = field(default_factory=dict)
  canonical_sort_json: str = "[]"
  canonical_filter_json: str = "{}"

  @property
  def has_sort(self) -> bool:
    return bool(self.sort_model)

  @property
  def has_filter(self) -> bool:
    return bool(self.filter_model)

  @property
  def is_empty(self) -> bool:
    return not self.has_sort and not self.has_filter

