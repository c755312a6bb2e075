"""
Unit tests for processing modes and options.
"""

import pytest

from mdprep.config import (
    Options,
    ProcessingMode,
    apply_metadata_to_options,
    default_metadata_file,
    options_for_mode,
    parse_bool,
    parse_mode,
)
from mdprep.metadata import MetadataList


class TestModes:
    """Tests for mode parsing and presets."""

    @pytest.mark.parametrize("name,mode", [
        ("commonmark", ProcessingMode.COMMONMARK),
        ("GFM", ProcessingMode.GFM),
        ("mmd", ProcessingMode.MULTIMARKDOWN),
        ("multimarkdown", ProcessingMode.MULTIMARKDOWN),
        (" kramdown ", ProcessingMode.KRAMDOWN),
        ("unified", ProcessingMode.UNIFIED),
    ])
    def test_parse_mode(self, name, mode):
        """Test mode names and aliases."""
        assert parse_mode(name) == mode

    def test_unknown_mode(self):
        """Test that unknown names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown mode"):
            parse_mode("asciidoc")

    def test_commonmark_preset(self):
        """Test the strict CommonMark preset."""
        options = options_for_mode(ProcessingMode.COMMONMARK)

        assert not options.enable_metadata_variables
        assert not options.enable_tables
        assert not options.unsafe
        assert not options.extracts_metadata

    def test_citations_only_in_citation_modes(self):
        """Test that citations need MultiMarkdown or unified mode."""
        assert Options(enable_citations=True).citations_active
        assert not Options(mode=ProcessingMode.GFM, enable_citations=True).citations_active

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("YES", True), ("1", True),
        ("false", False), ("no", False), ("0", False),
        ("maybe", None),
    ])
    def test_parse_bool(self, value, expected):
        """Test boolean metadata values."""
        assert parse_bool(value) is expected


class TestApplyMetadataToOptions:
    """Tests for apply_metadata_to_options."""

    def test_returns_new_options(self):
        """Test that the input options are not modified."""
        options = Options()
        result = apply_metadata_to_options(
            MetadataList.from_pairs([("link-citations", "true")]), options
        )

        assert result.link_citations
        assert not options.link_citations

    def test_mode_resets_to_preset(self):
        """Test that 'mode' resets options but keeps bibliography inputs."""
        options = Options(bibliography_files=["cli.bib"], base_directory="/docs")
        result = apply_metadata_to_options(
            MetadataList.from_pairs([("mode", "gfm")]), options
        )

        assert result.mode == ProcessingMode.GFM
        assert result.hardbreaks
        assert result.bibliography_files == ["cli.bib"]
        assert result.base_directory == "/docs"

    def test_bibliography_enables_citations(self):
        """Test comma separated bibliography files."""
        options = Options(bibliography_files=["a.bib"])
        result = apply_metadata_to_options(
            MetadataList.from_pairs([("bibliography", "a.bib, b.yaml")]), options
        )

        assert result.enable_citations
        assert result.bibliography_files == ["a.bib", "b.yaml"]

    def test_other_keys(self):
        """Test csl, nocite, title and boolean keys."""
        result = apply_metadata_to_options(
            MetadataList.from_pairs([
                ("CSL", "style.csl"),
                ("nocite", "*"),
                ("Title", "Paper"),
                ("suppress-bibliography", "yes"),
                ("transforms", "true"),
                ("tables", "maybe"),
            ]),
            Options(),
        )

        assert result.csl_file == "style.csl"
        assert result.enable_citations
        assert result.nocite == "*"
        assert result.document_title == "Paper"
        assert result.suppress_bibliography
        assert result.enable_metadata_transforms
        assert result.enable_tables


class TestDefaultMetadataFile:
    """Tests for default_metadata_file."""

    def test_missing(self):
        """Test that nothing is returned without a config file."""
        assert default_metadata_file() is None

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        """Test discovery under $XDG_CONFIG_HOME."""
        config = tmp_path / "cfg" / "mdprep" / "config.yml"
        config.parent.mkdir(parents=True)
        config.write_text("author: Jane\n", encoding="utf-8")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))

        assert default_metadata_file() == config
