from __future__ import annotations

import pytest

from classroom.common.validators import optional_text, require_positive_id
from classroom.core.exceptions import ValidationError


@pytest.mark.parametrize("value", [True, False, 1.9, "1.5", "abc", None, 0, -3])
def test_require_positive_id_rejects_non_integers(value):
    with pytest.raises(ValidationError) as exc:
        require_positive_id(value, "student_id")
    assert exc.value.field == "student_id"


@pytest.mark.parametrize("value, expected", [(7, 7), ("7", 7), (7.0, 7)])
def test_require_positive_id_accepts_integral_values(value, expected):
    assert require_positive_id(value, "student_id") == expected


def test_optional_text_trims_and_blanks_to_none():
    assert optional_text("  hi  ", "note", 10) == "hi"
    assert optional_text("   ", "note", 10) is None
    assert optional_text(None, "note", 10) is None


@pytest.mark.parametrize("value", [12345, ["a"], {"a": 1}, True])
def test_optional_text_rejects_non_strings(value):
    with pytest.raises(ValidationError) as exc:
        optional_text(value, "description", 500)
    assert exc.value.field == "description"
