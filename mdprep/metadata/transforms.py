"""Transform chains for metadata variables.

A variable token such as ``[%title:lower:slug]`` names a metadata key followed
by a chain of transforms.  Each transform receives the current value, either a
scalar string or an array of strings, and returns the next one.  ``split``
promotes a scalar to an array; ``join``, ``first`` and ``last`` turn it back
into a scalar; every other transform works on text and joins an array first.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Union
from urllib.parse import quote, unquote_plus

logger = logging.getLogger(__name__)


class TransformError(Exception):
    """A transform chain could not be parsed or evaluated."""


@dataclass
class Transform:
    """One step of a chain: ``name`` or ``name(options)``."""
    name: str
    options: Optional[str] = None


@dataclass
class Scalar:
    text: str


@dataclass
class Array:
    """Array state inside a chain.

    ``separator`` is used whenever the array has to become text again:
    ``", "`` for arrays split from a string, ``""`` for the character
    arrays ``slice`` makes out of a plain string.
    """
    items: list[str] = field(default_factory=list)
    separator: str = ", "


Value = Union[Scalar, Array]

TransformFunc = Callable[[Value, Optional[str]], Value]

TRANSFORMS: dict[str, TransformFunc] = {}

DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")

_NUMBER_PATTERN = re.compile(r'\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def as_text(value: Value) -> str:
    if isinstance(value, Array):
        return value.separator.join(value.items)
    return value.text


# ============================================================
# Chain parsing
# ============================================================

def _find_closing_paren(text: str, open_pos: int) -> int:
    """Index of the ``)`` balancing ``text[open_pos]``, or -1."""
    depth = 0
    pos = open_pos
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return -1


def parse_transform_chain(pattern: str) -> tuple[str, list[Transform]]:
    """Split ``KEY:NAME(OPTS):NAME`` into the key and its transforms.

    Raises:
        TransformError: unbalanced parentheses or text after ``)`` that is
            not a ``:`` separator.
    """
    key, sep, rest = pattern.partition(":")
    chain: list[Transform] = []
    if not sep:
        return key, chain

    pos = 0
    while pos < len(rest):
        name_end = pos
        while name_end < len(rest) and rest[name_end] not in ":(":
            name_end += 1
        name = rest[pos:name_end].strip()
        options = None
        pos = name_end

        if pos < len(rest) and rest[pos] == "(":
            close = _find_closing_paren(rest, pos)
            if close == -1:
                raise TransformError(f"missing ')' in transform {name!r}")
            options = rest[pos + 1:close]
            pos = close + 1

        if name:
            chain.append(Transform(name, options))

        if pos < len(rest):
            if rest[pos] != ":":
                raise TransformError(
                    f"unexpected {rest[pos]!r} after transform {name!r}"
                )
            pos += 1

    return key, chain


# ============================================================
# Option helpers
# ============================================================

def _parse_int(text: str, name: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise TransformError(f"{name}: expected an integer, got {text!r}") from None


def _parse_int_pair(options: str, name: str) -> tuple[int, Optional[int]]:
    first, sep, second = options.partition(",")
    start = _parse_int(first, name)
    if not sep or not second.strip():
        return start, None
    return start, _parse_int(second, name)


def _split_items(text: str, delimiter: str) -> list[str]:
    """Split on a literal delimiter, trimming items and dropping empty ones."""
    parts = text.split(delimiter) if delimiter else text.split()
    items = [part.strip() for part in parts if part.strip()]
    return items or [text]


def _as_array(value: Value) -> Array:
    if isinstance(value, Array):
        return value
    return Array(_split_items(value.text, ","))


# ============================================================
# Registry
# ============================================================

def transform(*names: str) -> Callable[[TransformFunc], TransformFunc]:
    """Register a transform that works on the whole Value."""
    def decorator(func: TransformFunc) -> TransformFunc:
        for name in names:
            TRANSFORMS[name] = func
        return func
    return decorator


def text_transform(*names: str) -> Callable[[Callable[[str, Optional[str]], str]], TransformFunc]:
    """Register a transform that works on text; arrays are joined first."""
    def decorator(func: Callable[[str, Optional[str]], str]) -> TransformFunc:
        def wrapper(value: Value, options: Optional[str]) -> Value:
            return Scalar(func(as_text(value), options))
        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        for name in names:
            TRANSFORMS[name] = wrapper
        return wrapper
    return decorator


# ============================================================
# Array transforms
# ============================================================

@transform("split")
def _split(value: Value, options: Optional[str]) -> Value:
    delimiter = options if options else " "
    return Array(_split_items(as_text(value), delimiter))


@transform("join")
def _join(value: Value, options: Optional[str]) -> Value:
    delimiter = options if options else ", "
    return Scalar(delimiter.join(_as_array(value).items))


@transform("first")
def _first(value: Value, options: Optional[str]) -> Value:
    items = _as_array(value).items
    return Scalar(items[0] if items else "")


@transform("last")
def _last(value: Value, options: Optional[str]) -> Value:
    items = _as_array(value).items
    return Scalar(items[-1] if items else "")


@transform("slice")
def _slice(value: Value, options: Optional[str]) -> Value:
    if isinstance(value, Array):
        array = value
    else:
        array = Array(list(value.text), separator="")

    if not options:
        return array

    start, length = _parse_int_pair(options, "slice")
    start = max(start, 0)
    if length is None or length < 0:
        items = array.items[start:]
    else:
        items = array.items[start:start + length]
    return Array(items, array.separator)


# ============================================================
# Text transforms
# ============================================================

@text_transform("upper")
def _upper(text: str, options: Optional[str]) -> str:
    return text.upper()


@text_transform("lower")
def _lower(text: str, options: Optional[str]) -> str:
    return text.lower()


@text_transform("trim")
def _trim(text: str, options: Optional[str]) -> str:
    return text.strip()


@text_transform("title")
def _title(text: str, options: Optional[str]) -> str:
    """Upper-case the first letter of each word, lower-case the rest."""
    chars = []
    previous_space = True
    for ch in text:
        if ch.isspace():
            previous_space = True
            chars.append(ch)
        else:
            chars.append(ch.upper() if previous_space else ch.lower())
            previous_space = False
    return "".join(chars)


@text_transform("capitalize")
def _capitalize(text: str, options: Optional[str]) -> str:
    return text[:1].upper() + text[1:]


@text_transform("strftime")
def _strftime(text: str, options: Optional[str]) -> str:
    """Reformat a ``YYYY-MM-DD[ HH:MM[:SS]]`` date; unparsable input is kept."""
    if not options:
        return text

    stripped = text.strip()
    for date_format in DATE_FORMATS:
        try:
            moment = datetime.strptime(stripped, date_format)
        except ValueError:
            continue
        try:
            formatted = moment.strftime(options)
        except ValueError:
            return text
        return formatted or text
    return text


@text_transform("slug", "slugify")
def _slug(text: str, options: Optional[str]) -> str:
    chars = []
    previous_hyphen = False
    for ch in text:
        if ch.isalnum():
            chars.append(ch.lower())
            previous_hyphen = False
        elif ch.isspace() or ch in "_-":
            if not previous_hyphen:
                chars.append("-")
                previous_hyphen = True
    return "".join(chars).strip("-")


@text_transform("replace")
def _replace(text: str, options: Optional[str]) -> str:
    """``replace(OLD,NEW)`` or ``replace(regex:PATTERN,NEW)``."""
    if not options:
        return text

    if options.startswith("regex:"):
        pattern, sep, replacement = options[len("regex:"):].rpartition(",")
        if not sep or not pattern:
            return text
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise TransformError(f"replace: invalid pattern {pattern!r}: {e}") from None
        return regex.sub(lambda match: replacement, text)

    old, sep, new = options.partition(",")
    if not sep or not old:
        return text
    return text.replace(old, new)


@text_transform("substring", "substr")
def _substring(text: str, options: Optional[str]) -> str:
    """``substr(start[,end])``; negative indices count from the end."""
    if not options:
        return text

    start, end = _parse_int_pair(options, "substring")
    length = len(text)
    if start < 0:
        start += length
    if end is None:
        end = length
    elif end < 0:
        end += length
    start = min(max(start, 0), length)
    end = min(max(end, 0), length)
    if start > end:
        return ""
    return text[start:end]


@text_transform("truncate")
def _truncate(text: str, options: Optional[str]) -> str:
    if not options:
        return text

    limit_text, _, suffix = options.partition(",")
    limit = _parse_int(limit_text, "truncate")
    if len(text) <= limit:
        return text

    keep = limit - len(suffix) if limit > len(suffix) else limit
    return text[:max(keep, 0)] + suffix


@text_transform("default")
def _default(text: str, options: Optional[str]) -> str:
    if text == "":
        return options or ""
    return text


HTML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}


@text_transform("escape", "html_escape")
def _escape(text: str, options: Optional[str]) -> str:
    chars = []
    for ch in text:
        if ch in HTML_ENTITIES:
            chars.append(HTML_ENTITIES[ch])
        elif 32 <= ord(ch) < 127:
            chars.append(ch)
        else:
            chars.append(f"&#{ord(ch)};")
    return "".join(chars)


@text_transform("basename")
def _basename(text: str, options: Optional[str]) -> str:
    return text.rpartition("/")[2]


@text_transform("urlencode")
def _urlencode(text: str, options: Optional[str]) -> str:
    return quote(text, safe="")


@text_transform("urldecode")
def _urldecode(text: str, options: Optional[str]) -> str:
    return unquote_plus(text)


@text_transform("prefix")
def _prefix(text: str, options: Optional[str]) -> str:
    return (options or "") + text


@text_transform("suffix")
def _suffix(text: str, options: Optional[str]) -> str:
    return text + (options or "")


@text_transform("remove")
def _remove(text: str, options: Optional[str]) -> str:
    if not options:
        return text
    return text.replace(options, "")


@text_transform("repeat")
def _repeat(text: str, options: Optional[str]) -> str:
    if not options:
        return text
    count = _parse_int(options, "repeat")
    if count <= 0:
        return text
    return text * count


@text_transform("reverse")
def _reverse(text: str, options: Optional[str]) -> str:
    return text[::-1]


@text_transform("format")
def _format(text: str, options: Optional[str]) -> str:
    """printf-style numeric formatting; non-numeric values are kept."""
    if not options:
        return text

    match = _NUMBER_PATTERN.match(text)
    if not match:
        return text
    number = float(match.group(1))
    try:
        return options % number
    except (TypeError, ValueError):
        return text


@text_transform("length")
def _length(text: str, options: Optional[str]) -> str:
    return str(len(text))


@text_transform("pad")
def _pad(text: str, options: Optional[str]) -> str:
    """Left-pad to ``width`` with ``char`` (default space)."""
    if not options:
        return text

    width_text, _, fill = options.partition(",")
    width = _parse_int(width_text, "pad")
    return text.rjust(width, fill[:1] or " ")


@text_transform("contains")
def _contains(text: str, options: Optional[str]) -> str:
    if not options:
        return "false"
    return "true" if options in text else "false"


# ============================================================
# Evaluation
# ============================================================

def apply_transform_chain(value: str, chain: list[Transform]) -> str:
    """Run ``value`` through ``chain``.

    Unknown transforms are skipped.  If any step fails the original value is
    returned; partial results are never surfaced.
    """
    current: Value = Scalar(value)
    try:
        for step in chain:
            func = TRANSFORMS.get(step.name)
            if func is None:
                logger.debug(f"Unknown transform {step.name!r}, skipping")
                continue
            current = func(current, step.options)
    except (TransformError, MemoryError) as e:
        logger.debug(f"Transform chain failed, using original value: {e}")
        return value
    return as_text(current)
