"""Tests for queryRelatos argument validation, normalization, and sanitization."""

import json

import pytest
from pydantic import ValidationError

from relatos.core.types import LEGACY_STATUS_ALIASES, POTENCIAL_VALUES, STATUS_VALUES
from relatos.retrieval.params import (
    DEFAULT_LIMIT,
    QUERY_RELATOS_TOOL,
    QueryRelatosParams,
    describe_validation_error,
    normalize_status,
    sanitize_search_text,
)


class TestPagination:
    def test_defaults(self):
        params = QueryRelatosParams.model_validate({})
        assert params.limit == DEFAULT_LIMIT == 50
        assert params.offset == 0

    @pytest.mark.parametrize("limit", [1, 50, 200])
    def test_limit_in_range(self, limit):
        assert QueryRelatosParams.model_validate({"limit": limit}).limit == limit

    @pytest.mark.parametrize("limit", [0, -1, 201, 10_000])
    def test_limit_out_of_range(self, limit):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"limit": limit})

    @pytest.mark.parametrize("offset", [0, 5000])
    def test_offset_bounds_inclusive(self, offset):
        assert QueryRelatosParams.model_validate({"offset": offset}).offset == offset

    @pytest.mark.parametrize("offset", [-1, 5001])
    def test_offset_out_of_range(self, offset):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"offset": offset})

    def test_whole_number_floats_accepted(self):
        params = QueryRelatosParams.model_validate({"limit": 10.0, "offset": 20.0, "tipo_id": 3.0})
        assert (params.limit, params.offset, params.tipo_id) == (10, 20, 3)
        assert isinstance(params.limit, int)

    @pytest.mark.parametrize("value", [10.5, True, "dez"])
    def test_non_integer_limit_rejected(self, value):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"limit": value})


class TestClosedObject:
    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            QueryRelatosParams.model_validate({"contrato": "X", "sql": "DROP TABLE relatos"})
        assert any(err["loc"] == ("sql",) for err in exc.value.errors())

    def test_empty_contrato_rejected(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"contrato": ""})

    def test_boolean_flags_must_be_booleans(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"ver_agir": "true"})
        assert QueryRelatosParams.model_validate({"ver_agir": False}).ver_agir is False

    def test_equipe_id_must_be_uuid(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"equipe_id": "equipe-azul"})
        params = QueryRelatosParams.model_validate({"equipe_id": "5f0c4b1e-8a57-4c1f-9d6a-2b3c4d5e6f70"})
        assert str(params.equipe_id) == "5f0c4b1e-8a57-4c1f-9d6a-2b3c4d5e6f70"

    @pytest.mark.parametrize("field", ["natureza_id", "tipo_id", "riscoassociado_id"])
    def test_ids_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({field: 0})
        assert getattr(QueryRelatosParams.model_validate({field: 3}), field) == 3

    def test_dates_require_timezone(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"date_from": "2024-05-01T00:00:00"})
        params = QueryRelatosParams.model_validate({"date_from": "2024-05-01T00:00:00Z"})
        assert params.date_from.tzinfo is not None


class TestEnums:
    @pytest.mark.parametrize("status", list(STATUS_VALUES) + list(LEGACY_STATUS_ALIASES))
    def test_known_status_accepted(self, status):
        assert QueryRelatosParams.model_validate({"status": status}).status == status

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"status": "Aberto"})

    @pytest.mark.parametrize("potencial", POTENCIAL_VALUES)
    def test_potencial_accepted(self, potencial):
        assert QueryRelatosParams.model_validate({"potencial": potencial}).potencial == potencial

    def test_unknown_potencial_rejected(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"potencial": "Alto"})


class TestNormalizeStatus:
    @pytest.mark.parametrize("status", STATUS_VALUES)
    def test_canonical_unchanged(self, status):
        assert normalize_status(status) == status

    def test_legacy_aliases(self):
        assert normalize_status("Aguardando Avaliacao") == "Aguardando Avaliação"
        assert normalize_status("Concluido") == "Concluído"

    @pytest.mark.parametrize("status", list(STATUS_VALUES) + list(LEGACY_STATUS_ALIASES))
    def test_idempotent(self, status):
        once = normalize_status(status)
        assert normalize_status(once) == once

    def test_empty(self):
        assert normalize_status(None) is None
        assert normalize_status("") is None


class TestSearchText:
    @pytest.mark.parametrize("char", list("(),=&|"))
    def test_filter_syntax_characters_rejected(self, char):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"search_text": f"vazamento {char} oleo"})

    def test_parenthesised_search_rejected(self):
        with pytest.raises(ValidationError) as exc:
            QueryRelatosParams.model_validate({"search_text": "teste (bomba)"})
        assert exc.value.errors()[0]["loc"] == ("search_text",)

    def test_stripped(self):
        params = QueryRelatosParams.model_validate({"search_text": "  andaime  "})
        assert params.search_text == "andaime"

    def test_blank_rejected(self):
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"search_text": "   "})

    def test_max_length(self):
        assert QueryRelatosParams.model_validate({"search_text": "a" * 80}).search_text == "a" * 80
        with pytest.raises(ValidationError):
            QueryRelatosParams.model_validate({"search_text": "a" * 81})

    def test_like_metacharacters_allowed_by_schema(self):
        params = QueryRelatosParams.model_validate({"search_text": "100%_ok"})
        assert params.search_text == "100%_ok"


class TestSanitizeSearchText:
    def test_removes_wildcards(self):
        assert sanitize_search_text("100%_ok") == "100 ok"

    def test_collapses_whitespace(self):
        assert sanitize_search_text("  queda \t de\n\n  altura ") == "queda de altura"

    def test_removes_escape_character(self):
        assert sanitize_search_text("a\\b") == "a b"

    @pytest.mark.parametrize("text", ["%", "_%_", "x%y_z", "%%% a ___ b %%%", "plain text"])
    def test_output_has_no_pattern_characters(self, text):
        out = sanitize_search_text(text)
        assert "%" not in out
        assert "_" not in out
        assert "  " not in out
        assert out == out.strip()

    def test_only_wildcards_becomes_empty(self):
        assert sanitize_search_text("%_%") == ""


class TestToolDefinition:
    def test_tool_properties_match_schema(self):
        properties = QUERY_RELATOS_TOOL["function"]["parameters"]["properties"]
        assert set(properties) == set(QueryRelatosParams.model_fields)

    def test_tool_is_closed_object(self):
        assert QUERY_RELATOS_TOOL["function"]["parameters"]["additionalProperties"] is False

    def test_tool_offers_canonical_status_only(self):
        enum = QUERY_RELATOS_TOOL["function"]["parameters"]["properties"]["status"]["enum"]
        assert enum == list(STATUS_VALUES)


def test_describe_validation_error_is_json_safe():
    with pytest.raises(ValidationError) as exc:
        QueryRelatosParams.model_validate({"limit": 999, "search_text": "a|b", "extra": 1})
    details = describe_validation_error(exc.value)
    json.dumps(details)
    locs = {d["loc"] for d in details}
    assert {"limit", "search_text", "extra"} <= locs
