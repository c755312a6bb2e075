"""
Tests for the command line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from mdprep import __version__
from mdprep.cli import app


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def paper(tmp_path, bib_file):
    """A document that cites smith2020 via its front matter."""
    path = tmp_path / "paper.md"
    path.write_text(
        "---\ntitle: A Paper\nbibliography: refs.bib\n---\n"
        "# [%title]\n\nAs shown in [@smith2020].\n",
        encoding="utf-8",
    )
    return path


class TestConvertCommand:
    """Tests for 'mdprep convert'."""

    def test_convert_file(self, runner, paper):
        """Test conversion with the bibliography next to the document."""
        result = runner.invoke(app, ["convert", str(paper)])

        assert result.exit_code == 0
        assert "<h1>A Paper</h1>" in result.stdout
        assert "(Smith, J. 2020)" in result.stdout
        assert 'id="ref-smith2020"' in result.stdout

    def test_output_file(self, runner, paper, tmp_path):
        """Test -o."""
        out = tmp_path / "paper.html"
        result = runner.invoke(app, ["convert", str(paper), "-o", str(out)])

        assert result.exit_code == 0
        assert "<h1>A Paper</h1>" in out.read_text(encoding="utf-8")

    def test_stdin(self, runner):
        """Test '-' as input."""
        result = runner.invoke(app, ["convert", "-"], input="Hello\n")

        assert result.exit_code == 0
        assert result.stdout == "<p>Hello</p>\n"

    def test_meta_option(self, runner):
        """Test --meta values."""
        result = runner.invoke(
            app, ["convert", "-", "--meta", "title=CLI Title"], input="# [%title]\n"
        )
        assert result.stdout == "<h1>CLI Title</h1>\n"

    def test_meta_file_option(self, runner, tmp_path):
        """Test --meta-file."""
        meta_file = tmp_path / "defaults.yml"
        meta_file.write_text("author: Jane\n", encoding="utf-8")

        result = runner.invoke(
            app, ["convert", "-", "--meta-file", str(meta_file)], input="By [%author]\n"
        )
        assert result.stdout == "<p>By Jane</p>\n"

    def test_citation_flags(self, runner, tmp_path, bib_file):
        """Test --bibliography, --link-citations and --no-bibliography."""
        result = runner.invoke(
            app,
            [
                "convert", "-",
                "--bibliography", str(bib_file),
                "--link-citations",
                "--no-bibliography",
            ],
            input="See [@doe99].\n",
        )

        assert result.exit_code == 0
        assert '<a href="#ref-doe99"' in result.stdout
        assert 'id="refs"' not in result.stdout

    def test_transforms_flag(self, runner):
        """Test --transforms."""
        result = runner.invoke(
            app,
            ["convert", "-", "--meta", "title=hello", "--transforms"],
            input="[%title:upper]\n",
        )
        assert result.stdout == "<p>HELLO</p>\n"

    def test_unknown_mode(self, runner):
        """Test that an unknown mode exits with 1."""
        result = runner.invoke(app, ["convert", "-", "--mode", "asciidoc"], input="x\n")

        assert result.exit_code == 1
        assert "Unknown mode" in result.output

    def test_missing_input(self, runner, tmp_path):
        """Test that an unreadable input exits with 1."""
        result = runner.invoke(app, ["convert", str(tmp_path / "nope.md")])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestMetaCommand:
    """Tests for 'mdprep meta'."""

    def test_json(self, runner, paper):
        """Test JSON output."""
        result = runner.invoke(app, ["meta", str(paper), "-f", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["metadata"] == [
            {"key": "title", "value": "A Paper"},
            {"key": "bibliography", "value": "refs.bib"},
        ]
        assert data["summary"]["total_items"] == 2

    def test_yaml(self, runner):
        """Test front matter output with command line overrides."""
        result = runner.invoke(
            app, ["meta", "-", "--meta", "title=New", "-f", "yaml"], input="Title: Old\n"
        )
        assert result.stdout == "---\ntitle: New\n---\n"

    def test_rich(self, runner, paper):
        """Test the table output."""
        result = runner.invoke(app, ["meta", str(paper)])

        assert result.exit_code == 0
        assert "A Paper" in result.stdout

    def test_unknown_format(self, runner, paper):
        """Test an unsupported format."""
        result = runner.invoke(app, ["meta", str(paper), "-f", "xml"])
        assert result.exit_code == 1


class TestBibCommand:
    """Tests for 'mdprep bib'."""

    def test_json(self, runner, bib_file, csl_yaml_file):
        """Test listing entries from two files."""
        result = runner.invoke(app, ["bib", str(bib_file), str(csl_yaml_file), "-f", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["id"] for entry in data["entries"]] == ["smith2020", "doe99", "roe2015"]
        assert data["entries"][0]["container_title"] == "Journal of Studies"

    def test_rich(self, runner, bib_file):
        """Test the table output."""
        result = runner.invoke(app, ["bib", str(bib_file)])

        assert result.exit_code == 0
        assert "smith2020" in result.stdout


def test_version(runner):
    """Test 'mdprep version'."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
