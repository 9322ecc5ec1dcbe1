"""Tests for the CLI entry point (bannerbuildr.cli).

Covers argument parsing, job config layering, the generate pipeline on
real files in a temporary directory, sheet mode with a patched fetch,
the inspect and suggest commands, and error handling.
"""

import zipfile
from unittest.mock import patch

import pytest
import yaml

from bannerbuildr.cli import _job_config, build_parser, main
from bannerbuildr.processor.ingestion import RowSet
from bannerbuildr.schema.loader import save_config, save_mapping
from bannerbuildr.schema.models import JobConfig, Tier


CSV = (
    "id,custom_offer,headline,image,cta,offerType\n"
    "101,20% off,Big Sale,hero.jpg,Buy,\n"
    "102,,Skipped,,,bundle\n"
    "103,Free shipping,It's here,,,\n"
)


@pytest.fixture
def parser():
    return build_parser()


@pytest.fixture
def workdir(tmp_path, template_zip, mapping):
    (tmp_path / "template.zip").write_bytes(template_zip)
    (tmp_path / "rows.csv").write_text(CSV, encoding="utf-8")
    save_mapping(mapping, tmp_path / "mapping.yaml")
    return tmp_path


def _zip_names(path):
    with zipfile.ZipFile(path) as zf:
        return zf.namelist()


def _generate_args(workdir, *extra):
    return [
        "generate",
        "--template", str(workdir / "template.zip"),
        "--data", str(workdir / "rows.csv"),
        "--mapping", str(workdir / "mapping.yaml"),
        "--base-path", "https://cdn.example.com/",
        "-o", str(workdir / "out" / "variations.zip"),
        *extra,
    ]


# ===================================================================
# Parser tests
# ===================================================================

class TestParser:
    def test_generate_minimal(self, parser):
        args = parser.parse_args([
            "generate", "--template", "t.zip", "--data", "d.csv", "-o", "out.zip",
        ])
        assert args.command == "generate"
        assert args.template == "t.zip"
        assert args.data == "d.csv"
        assert args.output == "out.zip"
        assert args.tier is None
        assert args.skip_qa is False
        assert args.force is False
        assert args.verbose is False

    def test_generate_job_flags(self, parser):
        args = parser.parse_args([
            "generate", "--template", "t.zip", "-o", "out.zip",
            "--sheet-url", "https://docs.google.com/spreadsheets/d/x/edit",
            "--sheet-name", "parent", "--sheet-name", "OMS",
            "--tier", "T2", "--ids", "1", "2", "--key-field", "sku",
            "--workers", "4", "--require-dynamic-js",
        ])
        assert args.sheet_name == ["parent", "OMS"]
        assert args.ids == ["1", "2"]
        assert args.key_field == "sku"
        assert args.workers == 4
        assert args.require_dynamic_js is True

    def test_bad_tier_rejected(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["generate", "--template", "t", "-o", "o", "--tier", "T3"])

    def test_generate_requires_output(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["generate", "--template", "t.zip"])

    def test_no_command_fails(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_suggest_requires_data(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["suggest", "--template", "t.zip"])


# ===================================================================
# Config layering
# ===================================================================

class TestJobConfig:
    def test_flags_override_config(self, parser, tmp_path, mapping):
        path = tmp_path / "job.yaml"
        save_config(JobConfig(tier=Tier.T2, mapping=mapping, ids=["1"],
                              base_asset_path="https://old/"), path)
        args = parser.parse_args([
            "generate", "--template", "t.zip", "-o", "o.zip",
            "--config", str(path), "--tier", "T1", "--base-path", "https://new/",
        ])
        config = _job_config(args)
        assert config.tier is Tier.T1
        assert config.base_asset_path == "https://new/"
        assert config.ids == ["1"]
        assert config.mapping == mapping

    def test_sheet_defaults_to_parent_tab(self, parser):
        args = parser.parse_args([
            "generate", "--template", "t.zip", "-o", "o.zip",
            "--sheet-url", "https://docs.google.com/spreadsheets/d/x/edit",
        ])
        assert _job_config(args).sheet.tabs == ["parent"]

    def test_missing_config_file(self, parser, tmp_path, capsys):
        args = parser.parse_args([
            "generate", "--template", "t.zip", "-o", "o.zip",
            "--config", str(tmp_path / "nope.yaml"),
        ])
        with pytest.raises(SystemExit):
            _job_config(args)
        assert "Config file not found" in capsys.readouterr().err


# ===================================================================
# generate
# ===================================================================

class TestGenerate:
    def test_end_to_end(self, workdir, capsys):
        main(_generate_args(workdir))
        names = _zip_names(workdir / "out" / "variations.zip")
        folders = sorted({n.split("/")[0] for n in names})
        assert len(folders) == 2
        assert folders[0].startswith("Variation_1_101_20off_")
        assert folders[1].startswith("Variation_3_103_Freeshipping_")
        assert f"{folders[0]}/Dynamic.js" in names
        err = capsys.readouterr().err
        assert "Generated 2 variation(s)" in err
        assert "QA PASS" in err
        assert "1 row(s) have no 'custom_offer'" in err

    def test_values_in_archive(self, workdir):
        main(_generate_args(workdir, "--ids", "101"))
        with zipfile.ZipFile(workdir / "out" / "variations.zip") as zf:
            [name] = [n for n in zf.namelist() if n.endswith("Dynamic.js")]
            text = zf.read(name).decode("utf-8")
        assert "devDynamicContent.parent[0].headline = 'Big Sale';" in text
        assert ("devDynamicContent.parent[0].image.Url = "
                "'https://cdn.example.com/hero.jpg';") in text
        assert "devDynamicContent.parent[0].TIER = 'T1';" in text

    def test_preview_dir(self, workdir):
        preview = workdir / "preview"
        main(_generate_args(workdir, "--preview-dir", str(preview)))
        folders = list(preview.iterdir())
        assert len(folders) == 2
        assert all(f.name.startswith("banner-") for f in folders)
        assert (folders[0] / "index.html").exists()

    def test_t2_tier(self, workdir):
        main(_generate_args(workdir, "--tier", "T2", "--skip-qa"))
        names = _zip_names(workdir / "out" / "variations.zip")
        assert len({n.split("/")[0] for n in names}) == 1

    def test_unknown_id_exits(self, workdir, capsys):
        with pytest.raises(SystemExit):
            main(_generate_args(workdir, "--ids", "999"))
        assert "No row found with id = '999'" in capsys.readouterr().err
        assert not (workdir / "out" / "variations.zip").exists()

    def test_qa_failure_blocks_output(self, workdir, capsys):
        with patch("bannerbuildr.cli.VariationValidator") as validator_cls:
            validator_cls.return_value.validate_all.return_value.passed = False
            validator_cls.return_value.validate_all.return_value.summary.return_value = "QA FAIL"
            with pytest.raises(SystemExit):
                main(_generate_args(workdir))
        assert "QA validation failed" in capsys.readouterr().err
        assert not (workdir / "out" / "variations.zip").exists()

    def test_qa_failure_forced(self, workdir):
        with patch("bannerbuildr.cli.VariationValidator") as validator_cls:
            validator_cls.return_value.validate_all.return_value.passed = False
            validator_cls.return_value.validate_all.return_value.summary.return_value = "QA FAIL"
            main(_generate_args(workdir, "--force"))
        assert (workdir / "out" / "variations.zip").exists()

    def test_no_data_source(self, workdir, capsys):
        with pytest.raises(SystemExit):
            main(["generate", "--template", str(workdir / "template.zip"),
                  "-o", str(workdir / "o.zip")])
        assert "Give --data or --sheet-url" in capsys.readouterr().err

    def test_missing_template(self, workdir, capsys):
        with pytest.raises(SystemExit):
            main(["generate", "--template", str(workdir / "nope.zip"),
                  "--data", str(workdir / "rows.csv"), "-o", str(workdir / "o.zip")])
        assert "Template file not found" in capsys.readouterr().err

    def test_invalid_template(self, workdir, capsys):
        (workdir / "bad.zip").write_bytes(b"not a zip")
        with pytest.raises(SystemExit):
            main(["generate", "--template", str(workdir / "bad.zip"),
                  "--data", str(workdir / "rows.csv"), "-o", str(workdir / "o.zip")])
        assert "Not a zip archive" in capsys.readouterr().err

    def test_sheet_mode(self, workdir):
        tabs = {
            "parent": RowSet(rows=[{"id": "5", "headline": "Sheet headline"}],
                             columns=["id", "headline"]),
        }
        with patch("bannerbuildr.cli.fetch_sheet_tabs", return_value=tabs) as fetch:
            main([
                "generate", "--template", str(workdir / "template.zip"),
                "--sheet-url", "https://docs.google.com/spreadsheets/d/x/edit",
                "--ids", "5", "-o", str(workdir / "sheet.zip"),
            ])
        fetch.assert_called_once_with(
            "https://docs.google.com/spreadsheets/d/x/edit", ["parent"])
        with zipfile.ZipFile(workdir / "sheet.zip") as zf:
            [name] = [n for n in zf.namelist() if n.endswith("Dynamic.js")]
            assert name.startswith("Preview_1_5_")
            text = zf.read(name).decode("utf-8")
        assert "devDynamicContent.parent[0].headline = 'Sheet headline';" in text

    def test_sheet_mode_needs_ids(self, workdir, capsys):
        with pytest.raises(SystemExit):
            main([
                "generate", "--template", str(workdir / "template.zip"),
                "--sheet-url", "https://docs.google.com/spreadsheets/d/x/edit",
                "-o", str(workdir / "sheet.zip"),
            ])
        assert "needs --ids" in capsys.readouterr().err


# ===================================================================
# inspect / suggest
# ===================================================================

class TestInspect:
    def test_output(self, workdir, capsys):
        main(["inspect", "--template", str(workdir / "template.zip")])
        out = capsys.readouterr().out
        assert "Entry file:  index.html" in out
        assert "Ad size:     728x90" in out
        assert "Dynamic.js:  Dynamic.js" in out
        assert "  devDynamicContent.parent[0].custom_offer.Url" in out


class TestSuggest:
    def test_to_stdout(self, workdir, capsys):
        main(["suggest", "--template", str(workdir / "template.zip"),
              "--data", str(workdir / "rows.csv")])
        captured = capsys.readouterr()
        mapping = yaml.safe_load(captured.out)
        assert mapping["headline"] == "devDynamicContent.parent[0].headline"
        assert mapping["custom_offer"] == "devDynamicContent.parent[0].custom_offer"
        assert "offerType" not in mapping
        assert "Unmatched columns" not in captured.err

    def test_to_file(self, workdir):
        out = workdir / "suggested.yaml"
        main(["suggest", "--template", str(workdir / "template.zip"),
              "--data", str(workdir / "rows.csv"), "-o", str(out)])
        mapping = yaml.safe_load(out.read_text())
        assert list(mapping)[0] == "custom_offer"
        assert mapping["cta"] == "devDynamicContent.creative_data[0].cta"

    def test_dynamic_js_not_utf8(self, tmp_path, capsys):
        path = tmp_path / "latin1.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("index.html", "<html></html>")
            zf.writestr("Dynamic.js", "devDynamicContent.parent[0].headline = 'café';\n"
                        .encode("latin-1"))
        with pytest.raises(SystemExit):
            main(["inspect", "--template", str(path)])
        assert "Dynamic.js is not valid UTF-8" in capsys.readouterr().err
