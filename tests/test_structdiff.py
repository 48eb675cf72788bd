import dataclasses
import json

import pytest

from pixgate.structdiff import Entries, Entry, diff


@dataclasses.dataclass
class Inner:
    z: int = 1
    w: str = "same"


@dataclasses.dataclass
class Outer:
    x: int = 0
    y: str = "a"
    inner: Inner = dataclasses.field(default_factory=Inner)
    _hidden: int = 0


@dataclasses.dataclass
class Other:
    x: int = 0


def test_equal_objects_have_no_diff():
    assert diff(Outer(), Outer()) == []


def test_changed_fields_take_second_value():
    result = diff(Outer(x=1, y="a"), Outer(x=5, y="b"))
    assert result == [Entry("x", 5), Entry("y", "b")]


def test_nested_dataclass_diffed_recursively():
    result = diff(Outer(), Outer(inner=Inner(z=2)))
    assert len(result) == 1
    assert result[0].name == "inner"
    assert isinstance(result[0].value, Entries)
    assert result[0].value == [Entry("z", 2)]


def test_private_fields_are_skipped():
    assert diff(Outer(_hidden=1), Outer(_hidden=2)) == []


def test_different_types_yield_empty():
    assert diff(Outer(), Other(x=3)) == []


def test_non_dataclass_rejected():
    with pytest.raises(TypeError):
        diff(1, 2)


def test_string_form():
    result = diff(Outer(), Outer(y="b", inner=Inner(z=2)))
    assert str(result) == "y: b; inner: {z: 2}"


def test_empty_string_and_json():
    assert str(Entries()) == ""
    assert Entries().to_json() == "{}"


def test_json_round_trip():
    result = diff(Outer(), Outer(x=7, y="q", inner=Inner(z=3, w="other")))
    decoded = json.loads(result.to_json())
    assert decoded == {"x": 7, "y": "q", "inner": {"z": 3, "w": "other"}}


def test_json_keeps_field_order():
    result = Entries([Entry("b", 1), Entry("a", 2)])
    assert list(json.loads(result.to_json())) == ["b", "a"]