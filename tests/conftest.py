"""
Pytest configuration and shared fixtures.
"""

from pathlib import Path

import pytest

from mdprep.citations import (
    BibliographyEntry,
    BibliographyRegistry,
    Citation,
    CitationRegistry,
)
from mdprep.metadata import MetadataList


# ============================================================================
# Sample data
# ============================================================================

SAMPLE_BIBTEX = """\
@comment{generated by hand}

@article{smith2020,
  title = {A Study},
  author = {Smith, J.},
  journal = {Journal of Studies},
  volume = {12},
  pages = {1--10},
  year = {2020}
}

@book{doe99,
  title = "The {BibTeX} Way",
  author = "Doe, John",
  publisher = {Example Press},
  year = 1999
}
"""

SAMPLE_CSL_YAML = """\
references:
- id: roe2015
  type: book
  title: Writing Things
  author:
    - family: Roe
      given: Richard
  issued:
    date-parts:
      - - 2015
  publisher: Other Press
"""


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.config/mdprep/config.yml out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))


# ============================================================================
# Files
# ============================================================================


@pytest.fixture
def bib_file(tmp_path) -> Path:
    """A BibTeX file with smith2020 and doe99."""
    path = tmp_path / "refs.bib"
    path.write_text(SAMPLE_BIBTEX, encoding="utf-8")
    return path


@pytest.fixture
def csl_yaml_file(tmp_path) -> Path:
    """A CSL-YAML file with roe2015."""
    path = tmp_path / "refs.yaml"
    path.write_text(SAMPLE_CSL_YAML, encoding="utf-8")
    return path


# ============================================================================
# Registries
# ============================================================================


@pytest.fixture
def metadata() -> MetadataList:
    """A small metadata list."""
    return MetadataList.from_pairs([
        ("title", "My Document"),
        ("author", "Jane Doe"),
        ("date", "2024-01-15"),
    ])


@pytest.fixture
def bibliography() -> BibliographyRegistry:
    """A bibliography with two complete entries."""
    return BibliographyRegistry([
        BibliographyEntry(
            id="doe99",
            type="book",
            title="A Book",
            author="Doe",
            year="1999",
            publisher="Example Press",
        ),
        BibliographyEntry(
            id="smith2020",
            type="article-journal",
            title="A Study",
            author="Smith, J.",
            year="2020",
        ),
    ])


@pytest.fixture
def make_registry(bibliography):
    """Build a citation registry attached to the sample bibliography."""
    def _make(*citations: Citation) -> CitationRegistry:
        return CitationRegistry(citations=list(citations), bibliography=bibliography)
    return _make
