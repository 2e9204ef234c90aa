import pytest

from reportbuilder.grid import (
  FilterKind,
  FilterOperator,
  parse_filter_model,
  parse_models,
  parse_sort_model,
)


class TestParseSortModel:
  def test_parses_entries_in_order(self):
    entries = parse_sort_model(
      '[{"colId": "amount", "sort": "desc"}, {"colId": "name", "sort": "ASC"}]'
    )

    assert [(e.col_id, e.direction.value) for e in entries] == [
      ("amount", "desc"),
      ("name", "asc"),
    ]
    assert entries[1].is_asc is True

  @pytest.mark.parametrize(
    "payload",
    [None, "", "   ", "{not json", '{"colId": "a"}', "[1, 2]", '[{"colId": "a", "bogus": 1}]'],
  )
  def test_bad_payloads_give_empty_model(self, payload):
    assert parse_sort_model(payload) == []

  def test_drops_entries_missing_column_or_direction(self):
    entries = parse_sort_model(
      '[{"colId": "a"}, {"sort": "asc"}, {"colId": "b", "sort": "sideways"},'
      ' {"colId": "c", "sort": "asc"}]'
    )

    assert [e.col_id for e in entries] == ["c"]


class TestParseFilterModel:
  def test_parses_leaf_condition(self):
    model = parse_filter_model(
      '{"name": {"filterType": "text", "type": "contains", "filter": "acme"}}'
    )

    descriptor = model["name"]
    assert descriptor.kind == FilterKind.TEXT
    assert descriptor.op == FilterOperator.CONTAINS
    assert descriptor.filter == "acme"
    assert descriptor.is_compound is False

  def test_numeric_operands_become_strings(self):
    model = parse_filter_model(
      '{"amount": {"filterType": "number", "type": "inRange", "filter": 100, "filterTo": 200}}'
    )

    assert model["amount"].filter == "100"
    assert model["amount"].filter_to == "200"

  def test_parses_compound_condition(self):
    model = parse_filter_model(
      '{"amount": {"filterType": "number", "operator": "or", "conditions": ['
      '{"filterType": "number", "type": "lessThan", "filter": 10},'
      '{"filterType": "number", "type": "greaterThan", "filter": 100}]}}'
    )

    descriptor = model["amount"]
    assert descriptor.is_compound is True
    assert descriptor.operator == "OR"
    assert [c.op for c in descriptor.conditions] == [
      FilterOperator.LESS_THAN,
      FilterOperator.GREATER_THAN,
    ]

  def test_operator_lookup_is_case_insensitive(self):
    model = parse_filter_model(
      '{"d": {"filterType": "DATE", "type": "GREATERTHANEQUAL", "dateFrom": "2024-01-01"}}'
    )

    assert model["d"].kind == FilterKind.DATE
    assert model["d"].op == FilterOperator.GREATER_THAN_EQUAL

  @pytest.mark.parametrize(
    "payload",
    [None, "", "{not json", "[]", '{"name": 5}', '{"name": {"filterType": "text", "extra": 1}}'],
  )
  def test_bad_payloads_give_empty_model(self, payload):
    assert parse_filter_model(payload) == {}


class TestParseModels:
  def test_empty_inputs(self):
    parsed = parse_models(None, None)

    assert parsed.is_empty is True
    assert parsed.canonical_sort_json == "[]"
    assert parsed.canonical_filter_json == "{}"

  def test_canonical_json_is_normalized(self):
    parsed = parse_models(
      '[ {"sort": "DESC", "colId": "amount"} ]',
      '{"name": {"type": "contains", "filter": "acme", "filterType": "text"}}',
    )

    assert parsed.has_sort is True
    assert parsed.has_filter is True
    assert parsed.canonical_sort_json == '[{"colId":"amount","sort":"desc"}]'
    assert (
      parsed.canonical_filter_json
      == '{"name":{"filter":"acme","filterType":"text","type":"contains"}}'
    )

  def test_allowed_columns_drop_unknown_references(self):
    parsed = parse_models(
      '[{"colId": "AMOUNT", "sort": "asc"}, {"colId": "ghost", "sort": "asc"}]',
      '{"ghost": {"filterType": "text", "type": "contains", "filter": "x"}}',
      allowed_column_ids=["id", "amount"],
    )

    assert [e.col_id for e in parsed.sort_model] == ["AMOUNT"]
    assert parsed.filter_model == {}
    assert parsed.has_filter is False
    assert parsed.canonical_filter_json == "{}"
    assert parsed.canonical_sort_json == '[{"colId":"AMOUNT","sort":"asc"}]'

  def test_empty_allowed_columns_keep_everything(self):
    parsed = parse_models('[{"colId": "ghost", "sort": "asc"}]', None, allowed_column_ids=[])

    assert [e.col_id for e in parsed.sort_model] == ["ghost"]

  def test_malformed_filter_with_valid_sort(self):
    parsed = parse_models('[{"colId": "a", "sort": "asc"}]', "{not json")

    assert parsed.has_sort is True
    assert parsed.has_filter is False
