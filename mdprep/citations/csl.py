"""CSL bibliography parsers (CSL-YAML and CSL-JSON).

Both formats describe references as a list of mappings, either at the top
level or under a ``references`` key.  Only the fields the renderer uses are
kept: id, type, title, author, year, container-title, publisher, volume and
page.  Authors are rendered as ``family, given`` and joined with ``and``.

CSL-YAML is loaded with PyYAML.  Files PyYAML rejects fall back to a
line-oriented scanner that understands the common hand-written layout::

    - id: doe99
      author:
        - family: Doe
          given: John
      issued:
        date-parts:
          - - 1999
"""

import json
import logging
import re
from typing import Any, Optional

import yaml

from mdprep.citations.models import BibliographyEntry, BibliographyRegistry

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r'\d{4}')

# CSL 字段 -> BibliographyEntry 属性（作者和日期单独处理）
TEXT_FIELDS: dict[str, str] = {
    "type": "type",
    "title": "title",
    "container-title": "container_title",
    "publisher": "publisher",
    "volume": "volume",
    "page": "page",
}

NAME_FIELD_PATTERN = re.compile(
    r'''(family|given|literal)\s*:\s*(?:"([^"]*)"|'([^']*)'|([^,}\]\n#]+))'''
)

DATE_PARTS_PATTERN = re.compile(r'date-parts\s*:[\s\[\-]*(\d+)')


class CslYamlLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps as text, so ``issued: 2020-02-30`` loads."""


CslYamlLoader.add_constructor("tag:yaml.org,2002:timestamp", CslYamlLoader.construct_yaml_str)


# ============================================================
# Shared normalisation
# ============================================================

def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = ", ".join(str(item) for item in value if not isinstance(item, (list, dict)))
    text = str(value).strip()
    return text or None


def format_name(name: Any) -> Optional[str]:
    """``{family, given}`` -> ``"family, given"``; ``literal`` wins."""
    if isinstance(name, dict):
        literal = _text(name.get("literal"))
        if literal:
            return literal
        family = _text(name.get("family"))
        given = _text(name.get("given"))
        if family and given:
            return f"{family}, {given}"
        return family or given
    return _text(name)


def format_names(value: Any) -> Optional[str]:
    if isinstance(value, list):
        names = [name for name in (format_name(item) for item in value) if name]
        return " and ".join(names) or None
    return format_name(value)


def extract_year(item: dict) -> Optional[str]:
    """Year from ``issued`` (date-parts, raw, literal or a scalar) or ``year``."""
    issued = item.get("issued")
    if isinstance(issued, dict):
        parts = issued.get("date-parts")
        if isinstance(parts, list) and parts:
            first = parts[0]
            if isinstance(first, list) and first:
                return _text(first[0])
            return _text(first)
        for key in ("raw", "literal"):
            match = YEAR_PATTERN.search(str(issued.get(key) or ""))
            if match:
                return match.group(0)
    elif issued is not None:
        match = YEAR_PATTERN.search(str(issued))
        if match:
            return match.group(0)

    return _text(item.get("year"))


def entry_from_csl(item: Any) -> Optional[BibliographyEntry]:
    """Build an entry from one CSL mapping; items without an id are skipped."""
    if not isinstance(item, dict):
        return None
    entry_id = _text(item.get("id"))
    if not entry_id:
        return None

    entry = BibliographyEntry(id=entry_id)
    for field_name, attr in TEXT_FIELDS.items():
        setattr(entry, attr, _text(item.get(field_name)))
    entry.author = format_names(item.get("author"))
    entry.year = extract_year(item)
    return entry


def _reference_list(data: Any) -> Optional[list]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("references"), list):
        return data["references"]
    return None


def _registry_from_items(items: list) -> BibliographyRegistry:
    registry = BibliographyRegistry()
    for item in items:
        entry = entry_from_csl(item)
        if entry is None:
            continue
        if not registry.add(entry):
            logger.debug(f"Duplicate CSL id {entry.id!r} ignored")
    return registry


# ============================================================
# CSL-JSON
# ============================================================

def parse_csl_json(content: str) -> BibliographyRegistry:
    """Parse CSL-JSON: a top-level array or ``{"references": [...]}``."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid CSL-JSON: {e}")
        return BibliographyRegistry()

    items = _reference_list(data)
    if items is None:
        logger.warning("CSL-JSON has no reference list")
        return BibliographyRegistry()
    return _registry_from_items(items)


# ============================================================
# CSL-YAML
# ============================================================

def _yaml_scalar(value: str) -> Optional[str]:
    """Unquote a scalar; unquoted values stop at a comment."""
    value = value.strip()
    if not value:
        return None
    if value[0] in ("'", '"'):
        close = value.find(value[0], 1)
        inner = value[1:close] if close != -1 else value[1:]
        return inner.strip() or None
    return value.split(" #", 1)[0].strip() or None


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _collect_block(lines: list[str], start: int, base_indent: int) -> tuple[list[str], int]:
    """Lines after ``start`` nested under a key at ``base_indent``."""
    block = []
    pos = start + 1
    while pos < len(lines):
        line = lines[pos]
        stripped = line.strip()
        if not stripped:
            pos += 1
            continue
        indent = _indent(line)
        nested = indent > base_indent
        sibling_item = base_indent > 0 and indent == base_indent and stripped.startswith("- ")
        if not (nested or sibling_item):
            break
        block.append(stripped)
        pos += 1
    return block, pos


def _scan_authors(value: str, block: list[str]) -> Optional[str]:
    text = "\n".join([value] + block)
    names: list[dict[str, str]] = []
    current: dict[str, str] = {}

    for match in NAME_FIELD_PATTERN.finditer(text):
        key = match.group(1)
        field_value = next((g for g in match.groups()[1:] if g is not None), "").strip()
        if key in current:
            names.append(current)
            current = {}
        current[key] = field_value
    if current:
        names.append(current)

    if names:
        return format_names(names)
    return _yaml_scalar(value)


def _scan_year(value: str, block: list[str]) -> Optional[str]:
    text = "\n".join([value] + block)
    match = DATE_PARTS_PATTERN.search(text)
    if match:
        return match.group(1)
    match = YEAR_PATTERN.search(text)
    if match:
        return match.group(0)
    return None


def parse_csl_yaml_lines(content: str) -> BibliographyRegistry:
    """Line-oriented CSL-YAML scanner used when PyYAML rejects a file."""
    items: list[dict[str, Any]] = []
    current: Optional[dict[str, Any]] = None
    lines = content.splitlines()
    pos = 0

    while pos < len(lines):
        line = lines[pos]
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            pos += 1
            continue

        indent = _indent(line)
        if indent == 0 and stripped.startswith("-"):
            current = {}
            items.append(current)
            stripped = stripped[1:].strip()
            indent = 2
            if not stripped:
                pos += 1
                continue

        key, sep, value = stripped.partition(":")
        if current is None or not sep:
            pos += 1
            continue
        key = key.strip()

        if key == "author":
            block, pos = _collect_block(lines, pos, indent)
            current["author"] = _scan_authors(value, block)
            continue
        if key in ("issued", "year"):
            block, pos = _collect_block(lines, pos, indent)
            current["year"] = _scan_year(value, block)
            continue
        if key == "id" or key in TEXT_FIELDS:
            current[key] = _yaml_scalar(value)
        pos += 1

    registry = BibliographyRegistry()
    for item in items:
        entry_id = item.get("id")
        if not entry_id:
            continue
        entry = BibliographyEntry(id=entry_id, author=item.get("author"), year=item.get("year"))
        for field_name, attr in TEXT_FIELDS.items():
            setattr(entry, attr, item.get(field_name))
        registry.add(entry)
    return registry


def parse_csl_yaml(content: str) -> BibliographyRegistry:
    """Parse CSL-YAML: a top-level list or a mapping with ``references``.

    Front-matter style files (``---`` ... ``---``) are accepted; the first
    document holding a reference list is used.
    """
    try:
        documents = list(yaml.load_all(content, Loader=CslYamlLoader))
    except (yaml.YAMLError, ValueError) as e:
        logger.debug(f"CSL-YAML rejected by PyYAML, using line scanner: {e}")
        return parse_csl_yaml_lines(content)

    for data in documents:
        items = _reference_list(data)
        if items is not None:
            return _registry_from_items(items)
    return parse_csl_yaml_lines(content)
