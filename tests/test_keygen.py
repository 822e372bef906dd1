"""Tests for alias generators."""

import string

import pytest

from terse_json.keygen import (
    PrefixedPattern,
    alpha_key,
    alphanumeric_key,
    create_key_generator,
    numeric_key,
    short_key,
)


def test_alpha_sequence_wraps_to_two_letters():
    keys = [alpha_key(i) for i in range(28)]
    assert keys[:26] == list(string.ascii_lowercase)
    assert keys[26:] == ["aa", "ab"]


def test_alpha_is_bijective_past_two_letters():
    assert alpha_key(51) == "az"
    assert alpha_key(52) == "ba"
    assert alpha_key(701) == "zz"
    assert alpha_key(702) == "aaa"
    assert len({alpha_key(i) for i in range(2000)}) == 2000


def test_alphanumeric_sequence():
    keys = [alphanumeric_key(i) for i in range(10)]
    assert keys == ["a1", "a2", "a3", "a4", "a5", "a6", "a7", "a8", "a9", "b1"]


def test_numeric_and_short_presets():
    assert [numeric_key(i) for i in range(3)] == ["0", "1", "2"]
    assert [short_key(i) for i in range(4)] == ["_", "a", "b", "c"]


def test_prefixed_styles():
    numeric = PrefixedPattern(prefix="json").generator()
    alpha = PrefixedPattern(prefix="f_", style="alpha").generator()
    assert numeric(0) == "json0"
    assert numeric(12) == "json12"
    assert alpha(1) == "f_b"


def test_create_key_generator_names():
    assert create_key_generator()[1] == "alpha"
    assert create_key_generator("numeric")[1] == "numeric"
    assert create_key_generator({"prefix": "k"})[1] == "prefixed:k"
    generator, name = create_key_generator(lambda i: f"field{i}")
    assert name == "custom"
    assert generator(3) == "field3"


def test_create_key_generator_rejects_unknown_pattern():
    with pytest.raises(ValueError):
        create_key_generator("roman")
    with pytest.raises(ValueError):
        create_key_generator({"prefix": "x", "style": "hex"})
    with pytest.raises(ValueError):
        create_key_generator({"style": "alpha"})
