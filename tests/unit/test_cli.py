"""Unit tests for the mediavault CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from mediavault import __version__
from mediavault.cli.main import app


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


class TestStageCommand:
    """Tests for the stage command."""

    def test_stage_png(
        self, runner: CliRunner, public_root: Path, tmp_path: Path, png_bytes: bytes
    ) -> None:
        source = tmp_path / "logo.png"
        source.write_bytes(png_bytes)

        result = runner.invoke(
            app, ["--public-root", str(public_root), "stage", str(source), "--actor", "u1"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["path"].startswith("/uploads/temp/")
        assert data["mime_type"] == "image/webp"
        assert data["original_name"] == "logo.png"
        assert (public_root / data["path"].lstrip("/")).is_file()

    def test_stage_no_webp(
        self, runner: CliRunner, public_root: Path, tmp_path: Path, png_bytes: bytes
    ) -> None:
        source = tmp_path / "logo.png"
        source.write_bytes(png_bytes)

        result = runner.invoke(
            app, ["--public-root", str(public_root), "stage", str(source), "--no-webp"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["mime_type"] == "image/png"

    def test_stage_rejected_format(
        self, runner: CliRunner, public_root: Path, tmp_path: Path
    ) -> None:
        source = tmp_path / "page.html"
        source.write_text("<html></html>")

        result = runner.invoke(
            app, ["--public-root", str(public_root), "stage", str(source)]
        )

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "invalid_format"

    def test_stage_unknown_profile(
        self, runner: CliRunner, public_root: Path, tmp_path: Path
    ) -> None:
        source = tmp_path / "a.pdf"
        source.write_bytes(b"%PDF")

        result = runner.invoke(
            app,
            ["--public-root", str(public_root), "stage", str(source), "--profile", "x"],
        )

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "configuration_error"


class TestPromoteCommand:
    """Tests for the promote command."""

    def test_promote(
        self, runner: CliRunner, public_root: Path, temp_uploads: Path
    ) -> None:
        (temp_uploads / "a.jpg").write_bytes(b"jpg")

        result = runner.invoke(
            app,
            [
                "--public-root",
                str(public_root),
                "promote",
                "companies",
                "uploads/temp/a.jpg",
                "https://cdn/b.png",
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["paths"][0].startswith("/uploads/companies/")
        assert data["paths"][1] == "https://cdn/b.png"
        assert data["created"] == [data["paths"][0]]

    def test_promote_discard_obsolete(
        self, runner: CliRunner, public_root: Path, temp_uploads: Path
    ) -> None:
        companies = public_root / "uploads" / "companies"
        companies.mkdir(parents=True)
        (companies / "old.png").write_bytes(b"old")
        (temp_uploads / "new.png").write_bytes(b"new")

        result = runner.invoke(
            app,
            [
                "--public-root",
                str(public_root),
                "promote",
                "companies",
                "uploads/temp/new.png",
                "--existing",
                "/uploads/companies/old.png",
                "--discard-obsolete",
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["obsolete"] == ["/uploads/companies/old.png"]
        assert data["discarded"] == 1
        assert not (companies / "old.png").exists()

    def test_promote_traversal(self, runner: CliRunner, public_root: Path) -> None:
        result = runner.invoke(
            app,
            ["--public-root", str(public_root), "promote", "companies", "../../etc/passwd"],
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"] == "promotion_failed"
        assert str(public_root) not in data["message"]


class TestConvertCommand:
    """Tests for the convert command."""

    def test_convert(
        self, runner: CliRunner, tmp_path: Path, fake_soffice, docx_bytes: bytes
    ) -> None:
        config = tmp_path / "cfg.json"
        config.write_text(json.dumps({"converter": {"binary": str(fake_soffice("ok"))}}))
        source = tmp_path / "Offer Letter.docx"
        source.write_bytes(docx_bytes)
        output = tmp_path / "out" / "offer.pdf"

        result = runner.invoke(
            app, ["--config", str(config), "convert", str(source), "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["size"] == len(output.read_bytes())
        assert output.read_bytes().startswith(b"%PDF")

    def test_convert_failure(
        self, runner: CliRunner, tmp_path: Path, docx_bytes: bytes
    ) -> None:
        source = tmp_path / "a.docx"
        source.write_bytes(docx_bytes)

        with patch("mediavault.converter.pdf.find_libreoffice", return_value=None):
            result = runner.invoke(app, ["convert", str(source)])

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "conversion_failed"
        assert not (tmp_path / "a.pdf").exists()

    def test_convert_unwritable_output(
        self, runner: CliRunner, tmp_path: Path, fake_soffice, docx_bytes: bytes
    ) -> None:
        """Test an output path that cannot be written is reported as JSON."""
        config = tmp_path / "cfg.json"
        config.write_text(json.dumps({"converter": {"binary": str(fake_soffice("ok"))}}))
        source = tmp_path / "a.docx"
        source.write_bytes(docx_bytes)
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        result = runner.invoke(
            app,
            ["--config", str(config), "convert", str(source), "-o", str(blocker / "a.pdf")],
        )

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "conversion_failed"
        assert str(tmp_path) not in data["message"]


class TestConfigErrors:
    """Tests for configuration problems reported by the CLI."""

    def test_malformed_json(self, runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "cfg.json"
        config.write_text("{not json")

        result = runner.invoke(app, ["--config", str(config), "doctor", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "configuration_error"

    def test_invalid_value(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a value rejected by validation is a configuration error."""
        config = tmp_path / "cfg.json"
        config.write_text(json.dumps({"upload": {"quality": 5}}))

        result = runner.invoke(app, ["--config", str(config), "doctor", "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "configuration_error"
        assert data["message"].startswith("Invalid configuration")

    def test_missing_env_reference(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("MV_MISSING_ROOT", raising=False)
        config = tmp_path / "cfg.json"
        config.write_text(json.dumps({"storage": {"public_root": "env:MV_MISSING_ROOT"}}))

        result = runner.invoke(app, ["--config", str(config), "doctor", "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "configuration_error"
        assert "MV_MISSING_ROOT" in data["message"]


class TestDoctorCommand:
    """Tests for the doctor command."""

    def test_doctor_json(self, runner: CliRunner, public_root: Path) -> None:
        with patch("mediavault.converter.pdf.find_libreoffice", return_value=None):
            result = runner.invoke(
                app, ["--public-root", str(public_root), "doctor", "--json"]
            )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["libreoffice"]["status"] == "missing"
        assert data["public-root"]["status"] == "ok"
        assert "webp" in data

    def test_doctor_table(self, runner: CliRunner) -> None:
        with patch(
            "mediavault.converter.pdf.find_libreoffice", return_value="/usr/bin/soffice"
        ):
            result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0, result.output
        assert "mediavault doctor" in result.output


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
