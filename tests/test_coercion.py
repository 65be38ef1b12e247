import math
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_pricing.engine.coercion import (
    ScalarKind, as_boolean, as_list, as_number, as_text, is_empty, is_truthy, scalar_kind,
)


@pytest.mark.parametrize("raw, expected", [
    ("1,000", 1000.0),
    (" 2.5 ", 2.5),
    ("2,400.75", 2400.75),
    (7, 7.0),
    (0, 0.0),
    ("-3", -3.0),
])
def test_as_number_parses(raw, expected):
    assert as_number(raw) == expected


@pytest.mark.parametrize("raw", [None, True, False, "abc", "", "   ", [1], math.nan, math.inf])
def test_as_number_degrades_to_none(raw):
    assert as_number(raw) is None


def test_as_boolean():
    assert as_boolean(True) is True
    assert as_boolean(False) is False
    assert as_boolean("true") is True
    assert as_boolean("Yes") is True
    assert as_boolean(" YES ") is True
    assert as_boolean("no") is False
    assert as_boolean("1") is False
    assert as_boolean(1) is False
    assert as_boolean(None) is False


def test_as_list():
    assert as_list(None) == []
    assert as_list([]) == []
    assert as_list(("a", "b")) == ["a", "b"]
    assert as_list("deep_clean") == ["deep_clean"]
    assert as_list(3) == [3]


def test_as_text_is_canonical():
    assert as_text(True) == "true"
    assert as_text(False) == "false"
    assert as_text(4.0) == "4"
    assert as_text(4) == "4"
    assert as_text(2.5) == "2.5"
    assert as_text(" Deep_Clean ") == "deep_clean"
    assert as_text(None) == ""


def test_is_empty():
    assert is_empty(None)
    assert is_empty("")
    assert is_empty("   ")
    assert is_empty([])
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty("x")
    assert not is_empty(["x"])


def test_scalar_kind_checks_bool_before_number():
    assert scalar_kind(True) is ScalarKind.BOOLEAN
    assert scalar_kind(1) is ScalarKind.NUMBER
    assert scalar_kind(1.5) is ScalarKind.NUMBER
    assert scalar_kind("1") is ScalarKind.STRING
    assert scalar_kind(["1"]) is ScalarKind.LIST
    assert scalar_kind(None) is ScalarKind.ABSENT


def test_is_truthy():
    assert is_truthy(True)
    assert is_truthy("yes")
    assert is_truthy("detected")
    assert is_truthy(2)
    assert is_truthy(["oil"])
    assert not is_truthy(False)
    assert not is_truthy(0)
    assert not is_truthy(0.0)
    assert not is_truthy("")
    assert not is_truthy(" False ")
    assert not is_truthy("no")
    assert not is_truthy("0")
    assert not is_truthy([])
    assert not is_truthy(None)
