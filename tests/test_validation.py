"""Tests for input validation of tool parameters."""

import pytest

from miro_mcp.validation import (
    MAX_BULK_ITEMS,
    PositionOutOfBoundsError,
    ValidationError,
    validate_action,
    validate_bulk_item_dict,
    validate_choice,
    validate_dict,
    validate_int,
    validate_item_type,
    validate_item_types,
    validate_list,
    validate_max_depth,
    validate_max_items,
    validate_non_empty_string,
    validate_position_dict,
    validate_relative_to,
    validate_root_type,
    validate_text_type,
    _BOARD_ACTIONS,
    _ITEM_ACTIONS,
)


# ===================================================================
# Primitive validators
# ===================================================================


class TestValidateNonEmptyString:
    def test_valid(self) -> None:
        assert validate_non_empty_string("hello", "f") == "hello"

    def test_strips(self) -> None:
        assert validate_non_empty_string("  hi  ", "f") == "hi"

    def test_empty(self) -> None:
        with pytest.raises(ValidationError, match="non-empty string"):
            validate_non_empty_string("   ", "f")

    def test_not_string(self) -> None:
        with pytest.raises(ValidationError):
            validate_non_empty_string(42, "f")


class TestValidateInt:
    def test_valid(self) -> None:
        assert validate_int(5, "n", min_val=1, max_val=10) == 5

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValidationError, match="integer"):
            validate_int(True, "n")

    def test_float_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_int(2.5, "n")

    def test_below_min(self) -> None:
        with pytest.raises(ValidationError, match=">= 1"):
            validate_int(0, "n", min_val=1)

    def test_above_max(self) -> None:
        with pytest.raises(ValidationError, match="<= 10"):
            validate_int(11, "n", max_val=10)


class TestValidateChoice:
    def test_normalizes_case(self) -> None:
        assert validate_choice(" Shape ", "t", {"shape"}) == "shape"

    def test_unknown(self) -> None:
        with pytest.raises(ValidationError, match="must be one of"):
            validate_choice("blob", "t", {"shape"})


class TestValidateList:
    def test_bounds(self) -> None:
        assert validate_list([1], "l", min_length=1) == [1]
        with pytest.raises(ValidationError, match="at least 1"):
            validate_list([], "l", min_length=1)
        with pytest.raises(ValidationError, match="at most 2"):
            validate_list([1, 2, 3], "l", max_length=2)

    def test_not_list(self) -> None:
        with pytest.raises(ValidationError, match="must be a list"):
            validate_list("abc", "l")


def test_validate_dict() -> None:
    assert validate_dict({}, "d") == {}
    with pytest.raises(ValidationError, match="dict/object"):
        validate_dict([], "d")


# ===================================================================
# Domain validators
# ===================================================================


class TestValidateAction:
    def test_lowercases(self) -> None:
        assert validate_action("State", "board", _BOARD_ACTIONS) == "state"

    def test_missing(self) -> None:
        with pytest.raises(ValidationError, match="requires an 'action'"):
            validate_action("", "item", _ITEM_ACTIONS)

    def test_unknown_lists_valid_actions(self) -> None:
        with pytest.raises(ValidationError, match="create, delete, get, update"):
            validate_action("move", "item", _ITEM_ACTIONS)


class TestItemTypes:
    def test_single(self) -> None:
        assert validate_item_type("STICKY_NOTE") == "sticky_note"

    def test_list(self) -> None:
        assert validate_item_types(["frame", "Card"]) == ["frame", "card"]

    def test_list_reports_index(self) -> None:
        with pytest.raises(ValidationError, match=r"item_types\[1\]"):
            validate_item_types(["frame", "blob"])

    def test_root_type_excludes_connectors(self) -> None:
        assert validate_root_type("frame") == "frame"
        with pytest.raises(ValidationError):
            validate_root_type("connector")

    def test_text_type(self) -> None:
        assert validate_text_type("card") == "card"
        with pytest.raises(ValidationError, match="item_type"):
            validate_text_type("image")


def test_relative_to() -> None:
    assert validate_relative_to("PARENT_CENTER") == "parent_center"
    with pytest.raises(ValidationError):
        validate_relative_to("parent_middle")


def test_max_depth_range() -> None:
    assert validate_max_depth(1) == 1
    assert validate_max_depth(10) == 10
    for bad in (0, 11):
        with pytest.raises(ValidationError):
            validate_max_depth(bad)


def test_max_items() -> None:
    assert validate_max_items(0) == 0
    with pytest.raises(ValidationError):
        validate_max_items(-1)


class TestPositionDict:
    def test_accepts_numbers_and_strings(self) -> None:
        p = {"x": 10, "y": "50%"}
        assert validate_position_dict(p) == p

    def test_normalizes_relative_to_without_mutating(self) -> None:
        p = {"x": 1, "y": 2, "relativeTo": "Parent_Center"}
        out = validate_position_dict(p)
        assert out["relativeTo"] == "parent_center"
        assert p["relativeTo"] == "Parent_Center"

    def test_bool_coordinate_rejected(self) -> None:
        with pytest.raises(ValidationError, match="'position.x'"):
            validate_position_dict({"x": True, "y": 0})

    def test_bad_origin(self) -> None:
        with pytest.raises(ValidationError, match="origin"):
            validate_position_dict({"x": 0, "y": 0, "origin": 3})


class TestBulkItemDict:
    def test_valid(self) -> None:
        validate_bulk_item_dict({"type": "sticky_note", "data": {"content": "x"},
                                 "position": {"x": 0, "y": 0}, "parent": {"id": "f1"}}, 0)

    def test_not_dict(self) -> None:
        with pytest.raises(ValidationError, match="index 2"):
            validate_bulk_item_dict("nope", 2)

    def test_missing_type(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'type'"):
            validate_bulk_item_dict({"data": {}}, 0)

    def test_connector_rejected(self) -> None:
        with pytest.raises(ValidationError, match="connectors cannot be created"):
            validate_bulk_item_dict({"type": "Connector"}, 0)

    def test_bad_parent(self) -> None:
        with pytest.raises(ValidationError, match="'parent'"):
            validate_bulk_item_dict({"type": "shape", "parent": "f1"}, 0)

    def test_bad_style(self) -> None:
        with pytest.raises(ValidationError, match="'style'"):
            validate_bulk_item_dict({"type": "shape", "style": "red"}, 0)


def test_bulk_limit_constant() -> None:
    assert MAX_BULK_ITEMS == 20


def test_out_of_bounds_is_a_validation_error() -> None:
    err = PositionOutOfBoundsError("parent_top_left", "y", 700.0, 0, 600)
    assert isinstance(err, ValidationError)
    assert err.message == (
        "Position y=700.0 is out of bounds for 'parent_top_left': "
        "expected a value between 0 and 600."
    )
