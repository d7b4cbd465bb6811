"""Segment-to-total validation and company configuration."""
import json

import pytest

from qfilings.companies import (
    COMPANIES,
    CompanyConfigError,
    get_company,
    load_config,
    parse_company_list,
)
from qfilings.reconciliation import read_json, write_json
from qfilings.validate import segment_revenues, validate_company, validate_segment_table


class TestValidateSegmentTable:
    def test_within_tolerance(self):
        check = validate_segment_table(segment_revenues={"a": 60.0, "b": 39.0}, total_revenue=100.0)
        assert check.ok is True
        assert check.sum_segments == 99.0
        assert check.abs_delta == 1.0
        assert check.notes == "OK"

    def test_outside_tolerance(self):
        check = validate_segment_table(segment_revenues={"a": 50.0, "b": None}, total_revenue=100.0)
        assert check.ok is False
        assert check.pct_delta == 0.5
        assert "exceeds tolerance" in check.notes

    def test_no_total(self):
        check = validate_segment_table(segment_revenues={"a": 1.0}, total_revenue=None)
        assert check.ok is False
        assert check.abs_delta is None


def test_segment_revenues_skip_subtotals_and_private_keys():
    seg = {
        "googleSearch": 48509,
        "googleAdvertising": 64616,
        "googleServicesTotal": 73928,
        "googleCloud": 10347,
        "_percentages": {"x": 1},
    }
    assert segment_revenues(get_company("alphabet"), seg) == {"googleSearch": 48509, "googleCloud": 10347}


class TestValidateCompany:
    def test_report(self, tmp_path, capsys):
        company = get_company("alphabet")
        data = tmp_path / "companies" / "alphabet" / "data"
        write_json(data / "financials.json", {
            "FY2024": {
                "Q1": {"revenue": 100, "operatingIncome": 30, "netIncome": 20},
                "Q2": {"revenue": 110, "netIncome": 25},
            },
        })
        write_json(data / "segments.json", {
            "FY2024": {
                "Q1": {"googleSearch": 60, "googleCloud": 39, "googleServicesTotal": 61},
                "Q2": {"googleSearch": 50, "googleCloud": 20},
            },
        })

        report = validate_company(tmp_path, company)
        assert report["issues"] == 2
        assert report == read_json(data / "validation.json")

        q1 = report["quarters"]["FY2024 Q1"]
        assert q1["missingKeys"] == []
        assert q1["segments"]["ok"] is True
        q2 = report["quarters"]["FY2024 Q2"]
        assert q2["missingKeys"] == ["operatingIncome"]
        assert q2["segments"]["ok"] is False

        out = capsys.readouterr().out
        assert "FY2024 Q2 missing: operatingIncome" in out

    def test_no_data(self, tmp_path):
        report = validate_company(tmp_path, get_company("tesla"))
        assert report == {"company": "tesla", "quarters": {}, "issues": 0}


class TestCompanies:
    def test_registry(self):
        assert len(COMPANIES) == 10
        assert get_company(" Microsoft ").fy_end_month == 6
        assert get_company("nvidia").filing_document(4) == "10-K.pdf"
        assert get_company("intel").filing_document(2) == "10-Q.htm"

    def test_unknown_company(self):
        with pytest.raises(CompanyConfigError, match="Unknown company"):
            get_company("ibm")

    def test_company_list(self):
        assert [c.name for c in parse_company_list("intel, alphabet")] == ["intel", "alphabet"]
        assert len(parse_company_list("all")) == 10
        assert len(parse_company_list(None)) == 10

    def test_config_defaults(self, tmp_path):
        cfg = load_config(tmp_path, get_company("apple"))
        assert cfg == {"pageYears": 2, "chartYears": 4, "nextEarningsDate": None}

    def test_config_override(self, tmp_path):
        path = tmp_path / "companies" / "apple" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"pageYears": 3, "nextEarningsDate": "2025-01-30"}), encoding="utf-8")
        cfg = load_config(tmp_path, get_company("apple"))
        assert cfg["pageYears"] == 3
        assert cfg["chartYears"] == 4
        assert cfg["nextEarningsDate"] == "2025-01-30"

    @pytest.mark.parametrize("content", ['{"pageYears": 0}', '{"chartYears": "4"}', "[1, 2]", "{not json"])
    def test_config_invalid(self, tmp_path, content):
        path = tmp_path / "companies" / "apple" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text(content, encoding="utf-8")
        with pytest.raises(CompanyConfigError):
            load_config(tmp_path, get_company("apple"))
