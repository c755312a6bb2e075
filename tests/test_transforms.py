"""
Unit tests for metadata transform chains.
"""

import pytest

from mdprep.metadata import (
    Transform,
    TransformError,
    apply_transform_chain,
    parse_transform_chain,
)


def run(value: str, pattern: str) -> str:
    """Apply the chain in 'key:chain' form to value."""
    _, chain = parse_transform_chain(f"key:{pattern}")
    return apply_transform_chain(value, chain)


class TestParseTransformChain:
    """Tests for chain parsing."""

    def test_key_without_chain(self):
        """Test a bare key."""
        assert parse_transform_chain("title") == ("title", [])

    def test_names_and_options(self):
        """Test transforms with and without options."""
        key, chain = parse_transform_chain("title:replace(a,b):upper")

        assert key == "title"
        assert chain == [Transform("replace", "a,b"), Transform("upper")]

    def test_nested_parentheses_in_options(self):
        """Test that options may contain balanced parentheses."""
        _, chain = parse_transform_chain("v:replace(regex:(a|b),x)")
        assert chain == [Transform("replace", "regex:(a|b),x")]

    def test_missing_close_paren(self):
        """Test an unterminated option list."""
        with pytest.raises(TransformError):
            parse_transform_chain("title:replace(a,b")

    def test_garbage_after_options(self):
        """Test text between ')' and the next ':'."""
        with pytest.raises(TransformError):
            parse_transform_chain("title:replace(a,b)x")


class TestTextTransforms:
    """Tests for transforms that work on text."""

    @pytest.mark.parametrize("value,pattern,expected", [
        ("hello", "upper", "HELLO"),
        ("HeLLo", "lower", "hello"),
        ("  padded  ", "trim", "padded"),
        ("hello WORLD", "title", "Hello World"),
        ("hello world", "capitalize", "Hello world"),
        ("Hello, World_Foo", "slug", "hello-world-foo"),
        ("Hello World", "replace(World,There)", "Hello There"),
        ("a1b22", "replace(regex:[0-9]+,N)", "aNbN"),
        ("2024-01-15", "substr(0,4)", "2024"),
        ("2024-01-15", "substring(-2)", "15"),
        ("This is a very long title", "truncate(15,...)", "This is a ve..."),
        ("short", "truncate(15,...)", "short"),
        ("<a & 'b'>", "escape", "&lt;a &amp; &#39;b&#39;&gt;"),
        ("/a/b/c.txt", "basename", "c.txt"),
        ("a b&c", "urlencode", "a%20b%26c"),
        ("a+b%26c", "urldecode", "a b&c"),
        ("name", "prefix(my-)", "my-name"),
        ("name", "suffix(.md)", "name.md"),
        ("a-b-c", "remove(-)", "abc"),
        ("ab", "repeat(3)", "ababab"),
        ("abc", "reverse", "cba"),
        ("hello", "length", "5"),
        ("hello", "contains(ell)", "true"),
        ("hello", "contains(xyz)", "false"),
        ("3.14159", "format(%.2f)", "3.14"),
        ("42", "pad(5,0)", "00042"),
        ("2024-01-15", "strftime(%Y/%m/%d)", "2024/01/15"),
        ("not a date", "strftime(%Y)", "not a date"),
    ])
    def test_transform(self, value, pattern, expected):
        """Test a single transform."""
        assert run(value, pattern) == expected

    def test_default_only_applies_to_empty_values(self):
        """Test default()."""
        assert apply_transform_chain("", [Transform("default", "N/A")]) == "N/A"
        assert apply_transform_chain("set", [Transform("default", "N/A")]) == "set"

    def test_format_keeps_non_numeric_values(self):
        """Test format() on text."""
        assert run("abc", "format(%.2f)") == "abc"


class TestArrayTransforms:
    """Tests for split/join/first/last/slice."""

    def test_split_and_join(self):
        """Test splitting on spaces and joining with a delimiter."""
        assert run("a b c", "split:join(-)") == "a-b-c"

    def test_first_and_last(self):
        """Test picking items from a comma separated value."""
        assert run("red, green, blue", "split(,):first") == "red"
        assert run("red, green, blue", "last") == "blue"

    def test_slice_of_string(self):
        """Test that slicing a string works on characters."""
        assert run("Hello World", "slice(0,5)") == "Hello"

    def test_slice_of_array(self):
        """Test that slicing an array keeps the array separator."""
        assert run("a b c d", "split:slice(1,2)") == "b, c"

    def test_split_at_end_of_chain(self):
        """Test that a trailing array renders the same way a text transform would see it."""
        assert run("a, b, c", "split(,)") == "a, b, c"
        assert run("a, b, c", "split(,):slice(0,2)") == "a, b"
        assert run("a, b, c", "split(,):slice(0,2)") == run("a, b, c", "split(,):slice(0,2):trim")

    def test_text_transform_joins_arrays(self):
        """Test that a text transform sees the joined array."""
        assert run("a b", "split:upper") == "A, B"


class TestChainEvaluation:
    """Tests for apply_transform_chain error handling."""

    def test_chain_runs_in_order(self):
        """Test several transforms in sequence."""
        assert run("My Great Post", "lower:slug:prefix(/blog/)") == "/blog/my-great-post"

    def test_unknown_transform_is_skipped(self):
        """Test that unknown names do nothing."""
        chain = [Transform("nosuch"), Transform("upper")]
        assert apply_transform_chain("x", chain) == "X"

    def test_failure_returns_original_value(self):
        """Test that a bad option falls back to the untransformed value."""
        chain = [Transform("upper"), Transform("truncate", "abc")]
        assert apply_transform_chain("keep me", chain) == "keep me"

    def test_invalid_regex_returns_original_value(self):
        """Test that a broken pattern falls back to the untransformed value."""
        assert run("text", "replace(regex:[unclosed,x)") == "text"
