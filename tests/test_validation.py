"""Tests for infrabridge.validation."""

import pytest

from infrabridge.envelope import Err, Ok
from infrabridge.tools import ToolDef, anything, array, boolean, integer, number, obj, string
from infrabridge.validation import validate_arguments, validate_params


async def _noop(conn, params):
    return None


def _tool(*parameters, required=()):
    return ToolDef(name="sample", description="Sample tool", parameters=parameters, handler=_noop, required=required)


def _fields(result):
    assert isinstance(result, Err)
    return {item["field"]: item["problem"] for item in result.error.details["violations"]}


class TestRecordShape:
    def test_every_declared_key_is_present(self):
        record, violations = validate_params(
            (("key", string("k")), ("ttl", integer("t")), ("nx", boolean("n", default=False))),
            (),
            {},
        )

        assert violations == []
        assert record == {"key": None, "ttl": None, "nx": False}

    def test_unknown_keys_are_dropped(self):
        record, _ = validate_params((("key", string("k")),), (), {"key": "a", "bogus": 1})

        assert record == {"key": "a"}

    def test_null_counts_as_absent(self):
        result = validate_arguments(_tool(("key", string("k")), required=("key",)), {"key": None})

        assert _fields(result) == {"key": "required field missing"}

    def test_defaults_are_not_shared_between_calls(self):
        tool = _tool(("tags", array("t", items=string("tag"), default=["a"])))
        first = validate_arguments(tool, {})
        first.value["tags"].append("mutated")
        second = validate_arguments(tool, {})

        assert second.value["tags"] == ["a"]

    def test_none_arguments_treated_as_empty(self):
        result = validate_arguments(_tool(("x", integer("x", default=3))), None)

        assert result == Ok({"x": 3})

    def test_non_object_arguments_rejected(self):
        result = validate_arguments(_tool(), ["not", "an", "object"])

        assert _fields(result) == {"arguments": "expected object, got array"}


class TestTypes:
    @pytest.mark.parametrize(
        ("param", "value", "problem"),
        [
            (integer("n"), True, "expected integer, got boolean"),
            (integer("n"), 1.5, "expected integer, got number"),
            (integer("n"), "3", "expected integer, got string"),
            (number("n"), False, "expected number, got boolean"),
            (string("s"), 3, "expected string, got integer"),
            (boolean("b"), "true", "expected boolean, got string"),
            (array("a"), {"x": 1}, "expected array, got object"),
            (obj("o"), [1], "expected object, got array"),
        ],
    )
    def test_wrong_type_is_reported(self, param, value, problem):
        result = validate_arguments(_tool(("value", param)), {"value": value})

        assert _fields(result) == {"value": problem}

    def test_integral_float_accepted_as_integer(self):
        result = validate_arguments(_tool(("n", integer("n"))), {"n": 4.0})

        assert result.value == {"n": 4}
        assert isinstance(result.value["n"], int)

    def test_any_accepts_every_json_value(self):
        tool = _tool(("value", anything("v")))
        for value in ("s", 1, 2.5, True, [1], {"a": 1}):
            assert validate_arguments(tool, {"value": value}).value == {"value": value}

    def test_free_form_object_kept_as_is(self):
        payload = {"nested": {"deep": [1, 2]}, "flag": True}
        result = validate_arguments(_tool(("vars", obj("v"))), {"vars": payload})

        assert result.value == {"vars": payload}


class TestConstraints:
    def test_enum_violation(self):
        result = validate_arguments(
            _tool(("format", string("f", enum=("json", "yaml")))), {"format": "xml"}
        )

        assert _fields(result) == {"format": "expected one of ['json', 'yaml'], got 'xml'"}

    def test_minimum_and_maximum(self):
        tool = _tool(("limit", integer("l", minimum=1, maximum=1000)))

        assert _fields(validate_arguments(tool, {"limit": 0})) == {"limit": "must be >= 1, got 0"}
        assert _fields(validate_arguments(tool, {"limit": 1001})) == {"limit": "must be <= 1000, got 1001"}
        assert validate_arguments(tool, {"limit": 1000}).value == {"limit": 1000}

    def test_all_violations_collected_in_one_pass(self):
        tool = _tool(
            ("key", string("k")),
            ("ttl", integer("t", minimum=1)),
            ("nx", boolean("n")),
            required=("key",),
        )
        result = validate_arguments(tool, {"ttl": 0, "nx": "yes"})

        assert set(_fields(result)) == {"key", "ttl", "nx"}
        assert result.error.kind == "invalid_params"
        assert result.error.message.startswith("Invalid parameters for sample: ")


class TestNesting:
    def test_nested_paths_name_the_offending_field(self):
        queries = array(
            "Statements",
            items=obj(
                "Statement",
                properties=(("sql", string("SQL")), ("params", array("Bind values"))),
                required=("sql",),
            ),
        )
        result = validate_arguments(
            _tool(("queries", queries), required=("queries",)),
            {"queries": [{"sql": "SELECT 1"}, {"params": [1]}, {"sql": 5}]},
        )

        assert _fields(result) == {
            "queries[1].sql": "required field missing",
            "queries[2].sql": "expected string, got integer",
        }

    def test_null_array_items_rejected(self):
        result = validate_arguments(
            _tool(("keys", array("k", items=string("key")))), {"keys": ["a", None]}
        )

        assert _fields(result) == {"keys[1]": "expected non-null item"}

    def test_nested_record_fills_missing_keys(self):
        statement = obj(
            "Statement",
            properties=(("sql", string("SQL")), ("params", array("Bind values", default=[]))),
            required=("sql",),
        )
        result = validate_arguments(_tool(("stmt", statement)), {"stmt": {"sql": "SELECT 1", "x": 1}})

        assert result.value == {"stmt": {"sql": "SELECT 1", "params": []}}
