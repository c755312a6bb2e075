"""
Unit tests for the BibTeX parser.
"""

from mdprep.citations import parse_bibtex
from mdprep.citations.bibtex import parse_fields

from tests.conftest import SAMPLE_BIBTEX


class TestParseBibtex:
    """Tests for parse_bibtex."""

    def test_single_article(self):
        """Test the basic article entry."""
        registry = parse_bibtex(
            "@article{smith2020, title = {A Study}, author = {Smith, J.}, year = {2020}}"
        )

        assert len(registry) == 1
        entry = registry.find("smith2020")
        assert entry.type == "article-journal"
        assert entry.title == "A Study"
        assert entry.author == "Smith, J."
        assert entry.year == "2020"

    def test_sample_file(self):
        """Test several entries, comments and field mapping."""
        registry = parse_bibtex(SAMPLE_BIBTEX)

        assert [entry.id for entry in registry] == ["smith2020", "doe99"]
        smith = registry.find("smith2020")
        assert smith.container_title == "Journal of Studies"
        assert smith.volume == "12"
        assert smith.page == "1--10"
        doe = registry.find("doe99")
        assert doe.type == "book"
        assert doe.title == "The BibTeX Way"
        assert doe.publisher == "Example Press"
        assert doe.year == "1999"

    def test_inproceedings_fallbacks(self):
        """Test booktitle and institution fallbacks."""
        registry = parse_bibtex(
            "@inproceedings{k, booktitle = {Proc. of Things}, "
            "institution = {ACME}, date = {2019-05-01}}"
        )

        entry = registry.find("k")
        assert entry.type == "paper-conference"
        assert entry.container_title == "Proc. of Things"
        assert entry.publisher == "ACME"
        assert entry.year == "2019"

    def test_unknown_type_defaults_to_article(self):
        """Test the default CSL type."""
        assert parse_bibtex("@misc{m, title = {T}}").find("m").type == "article"

    def test_unbalanced_entry_is_dropped(self):
        """Test recovery after a broken entry."""
        registry = parse_bibtex(
            "@article{bad, title = {oops\n@article{good, title = {Fine}}"
        )

        assert registry.find("bad") is None
        assert registry.find("good").title == "Fine"

    def test_duplicate_ids_keep_first(self):
        """Test that the first entry for an id wins."""
        registry = parse_bibtex(
            "@book{x, title = {First}}\n@book{x, title = {Second}}"
        )

        assert len(registry) == 1
        assert registry.find("x").title == "First"

    def test_lookup_is_case_sensitive(self):
        """Test that ids are matched exactly."""
        registry = parse_bibtex("@book{Doe99, title = {T}}")

        assert registry.find("Doe99") is not None
        assert registry.find("doe99") is None

    def test_parenthesised_entry(self):
        """Test @type(key, ...) entries."""
        registry = parse_bibtex("@book(p, title = {Parens})")
        assert registry.find("p").title == "Parens"


class TestParseFields:
    """Tests for field value parsing."""

    def test_value_forms(self):
        """Test braced, quoted, bare and concatenated values."""
        fields = parse_fields(
            'title = {Nested {Braces}}, note = "A" # " B", year = 2001, Month = jan'
        )

        assert fields == [
            ("title", "Nested Braces"),
            ("note", "A B"),
            ("year", "2001"),
            ("month", "jan"),
        ]
