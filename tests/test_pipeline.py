"""Command line stages and the run report."""
import json

import pytest

from qfilings.companies import get_company
from qfilings.pipeline import _parse_args, _stages_for, _summary, main, run_pipeline
from qfilings.reconciliation import write_json
from qfilings.sec_edgar import SecEdgarError


def _financials(root, name):
    write_json(root / "companies" / name / "data" / "financials.json", {
        "FY2024": {"Q1": {"revenue": 100, "operatingIncome": 30, "netIncome": 20}},
    })


class TestStages:
    def test_commands(self):
        assert _stages_for("all") == ["download", "extract", "validate", "aggregate"]
        assert _stages_for("site") == ["aggregate"]
        assert _stages_for("extract") == ["extract"]
        with pytest.raises(ValueError):
            _stages_for("publish")

    def test_summary_counts(self):
        summary = _summary({"quarters": {"FY2024 Q1": {}}, "issues": 0, "errors": ["x"], "domains": {"financials": 4}})
        assert summary == {"quarters": 1, "issues": 0, "errors": 1, "domains": {"financials": 4}}


class TestParseArgs:
    def test_defaults(self):
        cfg = _parse_args(["extract"])
        assert cfg["command"] == "extract"
        assert len(cfg["companies"]) == 10
        assert cfg["docs_dir"] is None

    def test_companies_and_paths(self, tmp_path):
        cfg = _parse_args(["site", "--companies", "intel,tsmc", "--root", str(tmp_path), "--docs", str(tmp_path / "out")])
        assert [c.name for c in cfg["companies"]] == ["intel", "tsmc"]
        assert cfg["root"] == tmp_path
        assert cfg["docs_dir"] == tmp_path / "out"

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            _parse_args(["publish"])


class TestRunPipeline:
    def test_report(self, tmp_path):
        _financials(tmp_path, "alphabet")
        report = run_pipeline(
            command="site",
            companies=[get_company("alphabet")],
            root=tmp_path,
            generated_at="2025-02-05",
        )
        per = report["companies"]["alphabet"]
        assert per["ok"] is True
        assert per["stages"]["aggregate"] == {"quarters": 1, "pages": 1}
        assert (tmp_path / "docs" / "alphabet" / "quarters" / "FY2024Q1" / "index.html").exists()
        assert json.loads((tmp_path / "run_report.json").read_text(encoding="utf-8")) == report

    def test_failing_company_does_not_stop_the_run(self, tmp_path, capsys):
        _financials(tmp_path, "intel")
        bad = tmp_path / "companies" / "alphabet" / "config.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("{broken", encoding="utf-8")

        report = run_pipeline(
            command="aggregate",
            companies=[get_company("alphabet"), get_company("intel")],
            root=tmp_path,
            generated_at="2025-02-05",
        )
        assert report["companies"]["alphabet"]["ok"] is False
        assert report["companies"]["alphabet"]["errors"][0].startswith("CompanyConfigError")
        assert report["companies"]["intel"]["ok"] is True
        assert "Failed: alphabet" in capsys.readouterr().out

    def test_download_requires_user_agent(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SEC_USER_AGENT", raising=False)
        with pytest.raises(SecEdgarError):
            run_pipeline(command="download", companies=[get_company("intel")], root=tmp_path)


def test_main_exit_codes(tmp_path):
    _financials(tmp_path, "palantir")
    assert main(["validate", "--companies", "palantir", "--root", str(tmp_path)]) == 0
    (tmp_path / "companies" / "tesla").mkdir(parents=True)
    (tmp_path / "companies" / "tesla" / "config.json").write_text("[]", encoding="utf-8")
    assert main(["site", "--companies", "tesla", "--root", str(tmp_path)]) == 1
