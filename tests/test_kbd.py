import pytest

from sixfs.kbd import CAPSLOCK, KEY_UP, SHIFT, Keyboard


def test_plain_key():
    assert Keyboard().feed(0x1E) == ord("a")


def test_release_produces_nothing():
    assert Keyboard().feed(0x9E) == 0


def test_shift_press_and_release():
    kb = Keyboard()
    assert kb.decode([0x2A, 0x23, 0xAA, 0x23]) == [ord("H"), ord("h")]
    assert kb.shift & SHIFT == 0


def test_control_key():
    kb = Keyboard()
    assert kb.decode([0x1D, 0x1E]) == [ord("A") - ord("@")]


def test_caps_lock_toggles_and_inverts_shift():
    kb = Keyboard()
    assert kb.decode([0x3A, 0xBA, 0x1E]) == [ord("A")]
    assert kb.shift & CAPSLOCK
    assert kb.decode([0x2A, 0x1E, 0xAA]) == [ord("a")]
    assert kb.decode([0x3A, 0xBA, 0x1E]) == [ord("a")]


def test_e0_escape_arrow():
    kb = Keyboard()
    assert kb.decode([0xE0, 0x48]) == [KEY_UP]
    assert kb.feed(0x1E) == ord("a")


def test_number_row_with_shift():
    kb = Keyboard()
    assert kb.decode(bytes([0x02, 0x2A, 0x02])) == [ord("1"), ord("!")]


def test_out_of_range():
    with pytest.raises(ValueError):
        Keyboard().feed(256)