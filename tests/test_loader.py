"""
Unit tests for bibliography loading.
"""

import logging
from pathlib import Path

import pytest

from mdprep.citations import (
    BibliographyFormat,
    detect_format,
    load_bibliography,
    load_bibliography_file,
    resolve_bibliography_path,
)


class TestResolvePath:
    """Tests for resolve_bibliography_path."""

    def test_relative_to_base_dir(self, tmp_path):
        """Test that plain relative paths use the base directory."""
        assert resolve_bibliography_path("refs.bib", str(tmp_path)) == tmp_path / "refs.bib"

    @pytest.mark.parametrize("path", ["./refs.bib", "../refs.bib"])
    def test_explicit_relative_paths_are_kept(self, path):
        """Test ./ and ../ paths."""
        assert resolve_bibliography_path(path, "/base") == Path(path)

    def test_absolute_path_is_kept(self, tmp_path):
        """Test absolute paths."""
        absolute = str(tmp_path / "refs.bib")
        assert resolve_bibliography_path(absolute, "/base") == Path(absolute)

    def test_no_base_dir(self):
        """Test paths without a base directory."""
        assert resolve_bibliography_path("refs.bib") == Path("refs.bib")


class TestDetectFormat:
    """Tests for extension based detection."""

    @pytest.mark.parametrize("name,fmt", [
        ("refs.bib", BibliographyFormat.BIBTEX),
        ("REFS.BIBTEX", BibliographyFormat.BIBTEX),
        ("refs.json", BibliographyFormat.CSL_JSON),
        ("refs.yaml", BibliographyFormat.CSL_YAML),
        ("refs.yml", BibliographyFormat.CSL_YAML),
        ("refs.txt", BibliographyFormat.UNKNOWN),
    ])
    def test_extensions(self, name, fmt):
        """Test known and unknown extensions."""
        assert detect_format(name) == fmt


class TestLoadBibliography:
    """Tests for loading and merging files."""

    def test_load_bibtex_file(self, bib_file):
        """Test a single BibTeX file."""
        registry = load_bibliography_file(bib_file)
        assert [entry.id for entry in registry] == ["smith2020", "doe99"]

    def test_merge_multiple_formats(self, tmp_path, bib_file, csl_yaml_file):
        """Test BibTeX and CSL-YAML files loaded together."""
        registry = load_bibliography(["refs.bib", "refs.yaml"], base_dir=str(tmp_path))
        assert [entry.id for entry in registry] == ["smith2020", "doe99", "roe2015"]

    def test_first_loaded_entry_wins(self, tmp_path):
        """Test duplicate ids across files."""
        (tmp_path / "a.bib").write_text("@book{dup, title = {From Bib}}", encoding="utf-8")
        (tmp_path / "b.json").write_text('[{"id": "dup", "title": "From JSON"}]', encoding="utf-8")

        registry = load_bibliography(["a.bib", "b.json"], base_dir=str(tmp_path))

        assert len(registry) == 1
        assert registry.find("dup").title == "From Bib"

    def test_missing_file_is_skipped(self, tmp_path, bib_file, caplog):
        """Test that an unavailable file does not stop the others."""
        with caplog.at_level(logging.WARNING):
            registry = load_bibliography(["missing.bib", "refs.bib"], base_dir=str(tmp_path))

        assert len(registry) == 2
        assert "missing.bib" in caplog.text

    def test_oversized_file_is_skipped(self, bib_file, monkeypatch, caplog):
        """Test the size limit."""
        monkeypatch.setattr("mdprep.citations.loader.MAX_BIBLIOGRAPHY_BYTES", 10)

        with caplog.at_level(logging.WARNING):
            registry = load_bibliography_file(bib_file)

        assert not registry
        assert "limit" in caplog.text

    def test_unknown_extension_sniffs_content(self, tmp_path):
        """Test content sniffing for BibTeX and CSL-JSON."""
        bib = tmp_path / "refs.txt"
        bib.write_text("@article{a, title = {T}}", encoding="utf-8")
        csl = tmp_path / "refs.data"
        csl.write_text('[{"id": "b", "title": "U"}]', encoding="utf-8")

        assert load_bibliography_file(bib).find("a").title == "T"
        assert load_bibliography_file(csl).find("b").title == "U"

    def test_unrecognised_content(self, tmp_path, caplog):
        """Test a file that is no known format."""
        path = tmp_path / "notes.txt"
        path.write_text("just some notes\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            assert not load_bibliography_file(path)
        assert "unrecognized format" in caplog.text
