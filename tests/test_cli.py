"""
Tests for the command line interface.
"""

import json

import pytest
from click.testing import CliRunner

from sasakit import __version__
from sasakit.calculation import NATIVE_THREADS
from sasakit.cli.main import cli

from .conftest import DATA_DIR

SINGLE_CHAIN = str(DATA_DIR / "single_chain.pdb")
MULTI_CHAIN = str(DATA_DIR / "multi_chain.pdb")


@pytest.fixture
def runner():
    return CliRunner()


class TestCalcCommand:
    """Tests for 'sasakit calc'."""

    def test_single_file(self, runner):
        result = runner.invoke(cli, ["calc", SINGLE_CHAIN])
        assert result.exit_code == 0
        assert "single_chain" in result.output
        assert "110" in result.output
        assert "lee-richards" in result.output

    def test_several_files(self, runner):
        result = runner.invoke(cli, ["calc", SINGLE_CHAIN, MULTI_CHAIN])
        assert result.exit_code == 0
        assert "single_chain" in result.output
        assert "multi_chain" in result.output

    def test_failed_file_reported(self, runner, tmp_path):
        result = runner.invoke(cli, ["calc", str(tmp_path / "missing.pdb"), SINGLE_CHAIN])
        assert result.exit_code == 1
        assert "single_chain" in result.output
        assert "1 of 2 file(s) failed" in result.output

    def test_shrake_rupley(self, runner):
        result = runner.invoke(
            cli, ["calc", SINGLE_CHAIN, "--algorithm", "shrake-rupley", "-r", "200"]
        )
        assert result.exit_code == 0
        assert "shrake-rupley" in result.output
        assert "200 points" in result.output

    def test_invalid_algorithm(self, runner):
        result = runner.invoke(cli, ["calc", SINGLE_CHAIN, "--algorithm", "monte-carlo"])
        assert result.exit_code == 2

    def test_invalid_probe(self, runner):
        result = runner.invoke(cli, ["calc", SINGLE_CHAIN, "--probe-radius", "-1"])
        assert result.exit_code == 1

    @pytest.mark.skipif(NATIVE_THREADS, reason="native library supports threads")
    def test_unsupported_threads(self, runner):
        result = runner.invoke(cli, ["calc", SINGLE_CHAIN, "--threads", "4"])
        assert result.exit_code == 1
        assert "1 of 1 file(s) failed" in result.output

    def test_custom_classifier(self, runner):
        result = runner.invoke(
            cli, ["calc", SINGLE_CHAIN, "--classifier", str(DATA_DIR / "custom.config")]
        )
        assert result.exit_code == 0
        assert "single_chain" in result.output

    def test_missing_classifier(self, runner, tmp_path):
        result = runner.invoke(
            cli, ["calc", SINGLE_CHAIN, "--classifier", str(tmp_path / "none.config")]
        )
        assert result.exit_code == 1
        assert "Error loading classifier" in result.output


class TestTreeCommand:
    """Tests for 'sasakit tree'."""

    def test_text_to_stdout(self, runner):
        result = runner.invoke(cli, ["tree", SINGLE_CHAIN, "--depth", "residue"])
        assert result.exit_code == 0
        assert "type\tname\ttotal" in result.output
        assert "ALA 1" in result.output
        assert "atom\t" not in result.output

    def test_json_file_with_two_results(self, runner, tmp_path):
        output = tmp_path / "tree.json"
        result = runner.invoke(
            cli, ["tree", SINGLE_CHAIN, MULTI_CHAIN, "-f", "json", "-d", "chain", "-o", str(output)]
        )
        assert result.exit_code == 0
        assert "Tree written to" in result.output

        data = json.loads(output.read_text())
        assert data["type"] == "root"
        assert len(data["children"]) == 2
        assert data["children"][1]["name"] == MULTI_CHAIN

    def test_xml(self, runner, tmp_path):
        output = tmp_path / "tree.xml"
        result = runner.invoke(cli, ["tree", SINGLE_CHAIN, "-f", "xml", "-o", str(output)])
        assert result.exit_code == 0
        assert output.read_bytes().startswith(b"<?xml")

    def test_failed_file(self, runner, tmp_path):
        output = tmp_path / "tree.json"
        result = runner.invoke(
            cli, ["tree", str(tmp_path / "missing.pdb"), SINGLE_CHAIN, "-f", "json", "-o", str(output)]
        )
        assert result.exit_code == 1
        assert len(json.loads(output.read_text())["children"]) == 1


class TestSelectCommand:
    """Tests for 'sasakit select'."""

    def test_selections(self, runner):
        result = runner.invoke(
            cli, ["select", SINGLE_CHAIN, "-s", "alanine, resn ala", "-s", "bb, name ca+n+c+o"]
        )
        assert result.exit_code == 0
        assert "alanine" in result.output
        assert "25" in result.output
        assert "80" in result.output

    def test_empty_selection_warned(self, runner):
        result = runner.invoke(
            cli, ["select", SINGLE_CHAIN, "-s", "trp, resn trp", "-s", "ser, resn ser"]
        )
        assert result.exit_code == 0
        assert "1 selection(s) matched no atoms" in result.output

    def test_syntax_error(self, runner):
        result = runner.invoke(cli, ["select", SINGLE_CHAIN, "-s", "no expression"])
        assert result.exit_code == 1

    def test_selection_required(self, runner):
        result = runner.invoke(cli, ["select", SINGLE_CHAIN])
        assert result.exit_code == 2


class TestGlobalOptions:
    """Tests for group-level options."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_quiet(self, runner):
        result = runner.invoke(cli, ["-q", "calc", SINGLE_CHAIN])
        assert result.exit_code == 0

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("calc", "tree", "select"):
            assert command in result.output
