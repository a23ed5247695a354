"""Unit Tests for parameter binding

Tests ParamItem validation and the binder helpers:
- Marker stripping and name validation
- Positional name/value pairing
- Accepted parameter shapes
- Duplicate detection and unique naming
"""

import pytest
from pydantic import ValidationError

from db_helper.core.binder import bind, normalize_params, to_bind_dict, unique_name
from db_helper.core.command import Command
from db_helper.errors import ArgumentError
from db_helper.models.params import ParamItem
from db_helper.models.query import CommandType, Statement


class TestParamItem:
    """Test bind parameter model validation."""

    @pytest.mark.parametrize("raw", ["id", "@id", ":id", "  id  "])
    def test_marker_stripped(self, raw: str):
        """Test leading markers and whitespace never reach the stored name."""
        assert ParamItem(name=raw, value=1).name == "id"

    @pytest.mark.parametrize("raw", ["", "@", "  "])
    def test_empty_name_rejected(self, raw: str):
        with pytest.raises(ValidationError, match="can not be empty"):
            ParamItem(name=raw)

    @pytest.mark.parametrize("raw", ["1id", "a-b", "a b", "id;--"])
    def test_invalid_name_rejected(self, raw: str):
        with pytest.raises(ValidationError, match="Invalid parameter name"):
            ParamItem(name=raw)

    def test_value_defaults_to_null(self):
        assert ParamItem(name="id").value is None

    def test_frozen(self):
        """Test parameters cannot be mutated after construction."""
        param = ParamItem(name="id", value=1)
        with pytest.raises(ValidationError):
            param.value = 2


class TestBind:
    """Test positional pairing of names and values."""

    def test_pairs_in_order(self):
        params = bind(["id", "name"], [1, "a"])

        assert [(p.name, p.value) for p in params] == [("id", 1), ("name", "a")]

    @pytest.mark.parametrize(
        "names,values",
        [(None, None), ([], []), (["id"], None), (None, [1]), ([], [1])],
    )
    def test_empty_side_yields_nothing(self, names, values):
        """Test either side missing means a statement without parameters."""
        assert bind(names, values) == []

    def test_length_mismatch(self):
        with pytest.raises(ArgumentError, match="2 names, 1 values"):
            bind(["id", "name"], [1])

    def test_invalid_name_is_argument_error(self):
        """Test pydantic validation surfaces as ArgumentError here."""
        with pytest.raises(ArgumentError, match="Invalid parameter name"):
            bind(["1bad"], [1])


class TestNormalizeParams:
    """Test the parameter shapes session methods accept."""

    def test_none(self):
        assert normalize_params(None) == []

    def test_mapping(self):
        params = normalize_params({"id": 1, "@name": "a"})

        assert [(p.name, p.value) for p in params] == [("id", 1), ("name", "a")]

    def test_pairs_and_items_mixed(self):
        params = normalize_params([("id", 1), ParamItem(name="name", value="a")])

        assert [p.name for p in params] == ["id", "name"]

    def test_string_rejected(self):
        """Test a bare string is not mistaken for a sequence of pairs."""
        with pytest.raises(ArgumentError):
            normalize_params("id=1")

    def test_malformed_item(self):
        with pytest.raises(ArgumentError, match="pair"):
            normalize_params([("id",)])

    def test_non_string_name(self):
        with pytest.raises(ArgumentError, match="must be a string"):
            normalize_params({1: "a"})


class TestBindDict:
    """Test the driver-level mapping and name disambiguation."""

    def test_to_bind_dict(self):
        params = [ParamItem(name="id", value=1), ParamItem(name="name", value=None)]

        assert to_bind_dict(params) == {"id": 1, "name": None}

    def test_duplicate_names(self):
        params = [ParamItem(name="id", value=1), ParamItem(name="@id", value=2)]

        with pytest.raises(ArgumentError, match="Duplicate parameter name: id"):
            to_bind_dict(params)

    def test_unique_name(self):
        assert unique_name("p_id", set()) == "p_id"
        assert unique_name("p_id", {"p_id"}) == "p_id_2"
        assert unique_name("p_id", {"p_id", "p_id_2"}) == "p_id_3"


class TestCommand:
    """Test the reusable command object."""

    def test_prepare_replaces_parameters(self):
        """Test parameters of the previous statement never leak into the next."""
        command = Command()
        command.prepare(
            Statement(
                sql="SELECT :a, :b",
                parameters=[ParamItem(name="a", value=1), ParamItem(name="b", value=2)],
            )
        )
        assert command.parameters == {"a": 1, "b": 2}

        clause = command.prepare(
            Statement(
                sql="EXEC p @c = :c",
                parameters=[ParamItem(name="c", value=3)],
                command_type=CommandType.STORED_PROCEDURE,
            )
        )

        assert command.parameters == {"c": 3}
        assert command.text == "EXEC p @c = :c"
        assert command.command_type is CommandType.STORED_PROCEDURE
        assert str(clause) == "EXEC p @c = :c"

    def test_prepare_without_parameters(self):
        command = Command()
        command.parameters["stale"] = 1

        command.prepare(Statement(sql="SELECT 1"))

        assert command.parameters == {}
        assert command.command_type is CommandType.TEXT
