import pytest

from sixfs.formatting import (
    LOWER_DIGITS,
    UPPER_DIGITS,
    format_console,
    format_int,
    format_user,
)
from sixfs.layout import PanicError


@pytest.mark.parametrize("value", [0, 1, 9, 10, 12345, 2**31 - 1, -1, -12345, -(2**31)])
def test_format_int_decimal_round_trip(value):
    assert int(format_int(value, 10, True), 10) == value


@pytest.mark.parametrize("value", [0, 15, 16, 0xDEADBEEF, 2**32 - 1])
def test_format_int_hex_round_trip(value):
    assert int(format_int(value, 16, False), 16) == value


def test_format_int_unsigned_wraps_negative():
    assert int(format_int(-1, 16, False), 16) == 2**32 - 1


def test_format_int_digit_sets():
    assert format_int(255, 16, False, UPPER_DIGITS) == "FF"
    assert format_int(255, 16, False, LOWER_DIGITS) == "ff"


def test_format_int_bad_base():
    with pytest.raises(ValueError):
        format_int(5, 1)


def test_user_signed_is_32_bit():
    assert format_user("%d", 2**32 - 7) == format_user("%d", -7)
    assert int(format_user("%d", -42)) == -42


def test_user_strings_and_chars():
    assert format_user("%s=%s", "key", "value") == "key=value"
    assert format_user("%s", None) == "(null)"
    assert format_user("%c%c", ord("o"), "k") == "ok"


def test_user_percent_and_unknown():
    assert format_user("100%%") == "100%"
    assert format_user("%q") == "%q"
    assert format_user("end%") == "end"


def test_user_missing_argument():
    with pytest.raises(TypeError):
        format_user("%d %d", 1)


def test_console_hex_is_lowercase():
    assert format_console("%x", 0xABC) == format_user("%x", 0xABC).lower()
    assert format_console("%p", 0xABC) == format_console("%x", 0xABC)


def test_console_has_no_char_conversion():
    assert format_console("%c", 5) == "%c"


def test_console_strings_and_trailing_percent():
    assert format_console("a %s b%", "x") == "a x b"
    assert format_console("%s", None) == "(null)"


def test_console_null_format_panics():
    with pytest.raises(PanicError):
        format_console(None)