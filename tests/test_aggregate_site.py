"""Time-series aggregation, derived fields and the static site output."""
import json

import pytest

from qfilings.aggregate import (
    build_dataset,
    build_quarter,
    free_cash_flow,
    gross_profit,
    non_operating_income,
    quarter_pages,
    sga,
)
from qfilings.companies import get_company
from qfilings.reconciliation import write_json
from qfilings.site import DEFAULT_TEMPLATE, TEMPLATE_NAME, quarter_dir_name, render_page, write_site

ALPHABET = get_company("alphabet")
GENERATED = "2025-02-05"


def _q(revenue, **extra):
    return {"revenue": revenue, "operatingIncome": revenue // 3, "netIncome": revenue // 4, **extra}


@pytest.fixture()
def repo(tmp_path):
    data = tmp_path / "companies" / "alphabet" / "data"
    write_json(data / "financials.json", {
        "FY2023": {"Q1": _q(69787), "Q2": _q(74604), "Q3": _q(76693), "Q4": _q(86310)},
        "FY2024": {
            "Q1": _q(80539),
            "Q2": _q(
                84742,
                costOfRevenue=35507,
                researchAndDevelopment=11860,
                salesAndMarketing=7308,
                generalAndAdministrative=3158,
                incomeBeforeTax=28653,
                epsDiluted=1.89,
                sharesDiluted=12447,
            ),
            "Q3": {"revenue": 86000, "isOutlook": True},
        },
    })
    write_json(data / "balance-sheet.json", {
        "FY2024": {"Q2": {
            "cashAndEquivalents": 23466,
            "totalAssets": 407384,
            "totalLiabilities": 114810,
            "totalEquity": 292574,
            "longTermDebt": 10883,
        }},
    })
    write_json(data / "cash-flows.json", {
        "FY2024": {"Q2": {"operatingCF": 26640, "investingCF": -13950, "financingCF": -18000, "capex": -13186}},
    })
    write_json(data / "segments.json", {
        "FY2024": {"Q2": {"googleSearch": 48509, "googleCloud": 10347, "_percentages": {"x": 1}}},
    })
    write_json(data / "segment-profit.json", {
        "FY2024": {"Q2": {"googleCloud": {"operatingIncome": 1172, "revenue": 10347}}},
    })
    write_json(data / "stock-prices.json", {"FY2024": {"Q2": {"price": 182.15, "date": "2024-06-28"}}})
    (tmp_path / "companies" / "alphabet" / "config.json").write_text(
        json.dumps({"pageYears": 1, "chartYears": 1, "nextEarningsDate": "2025-04-24"}), encoding="utf-8"
    )
    return tmp_path


class TestDerivedFields:
    def test_gross_profit(self):
        assert gross_profit({"revenue": 100, "costOfRevenue": 40}) == 60
        assert gross_profit({"revenue": 100, "costOfRevenue": 40, "grossProfit": 61}) == 61
        assert gross_profit({"revenue": 100}) is None

    def test_sga(self):
        assert sga({"salesAndMarketing": 7308, "generalAndAdministrative": 3158}) == 10466
        assert sga({"salesAndMarketing": 7308, "generalAndAdministrative": None}) == 7308
        assert sga({"sga": 6523, "salesAndMarketing": 1}) == 6523
        assert sga({}) is None

    def test_non_operating_income(self):
        assert non_operating_income({"otherIncomeExpense": 126, "incomeBeforeTax": 1, "operatingIncome": 0}) == 126
        assert non_operating_income({"incomeBeforeTax": 28653, "operatingIncome": 27425}) == 1228
        assert non_operating_income({"operatingIncome": 27425}) is None

    def test_free_cash_flow(self):
        # capex is reported negative by some filers and positive by others
        assert free_cash_flow({"operatingCF": 26640, "capex": -13186}) == 13454
        assert free_cash_flow({"operatingCF": 26640, "capex": 13186}) == 13454
        assert free_cash_flow({"freeCashFlow": 1, "operatingCF": 26640, "capex": 13186}) == 1
        assert free_cash_flow({"operatingCF": 26640}) is None

    def test_decimal_noise_is_rounded(self):
        assert gross_profit({"revenue": 868.46, "costOfRevenue": 357.8}) == 510.66


class TestBuildQuarter:
    def test_missing_domains_are_null(self):
        entry = build_quarter(2023, 1, _q(69787), {})
        assert entry["label"] == "FY2023 Q1"
        assert entry["balanceSheet"] is None
        assert entry["cashFlow"] is None
        assert entry["segments"] is None
        assert entry["segmentProfit"] is None
        assert entry["price"] is None
        assert entry["isOutlook"] is False

    def test_eps_falls_back_to_reported_eps(self):
        entry = build_quarter(2024, 1, {"revenue": 1, "eps": 0.5}, {})
        assert entry["eps"] == 0.5


class TestBuildDataset:
    def test_joined_quarter(self, repo):
        ds = build_dataset(repo, ALPHABET, generated_at=GENERATED)
        assert ds["company"] == "Alphabet"
        assert ds["ticker"] == "GOOGL"
        assert ds["generatedAt"] == GENERATED
        assert ds["nextEarningsDate"] == "2025-04-24"

        q2 = next(e for e in ds["quarters"] if e["label"] == "FY2024 Q2")
        assert q2["grossProfit"] == 49235
        assert q2["sga"] == 10466
        assert q2["nonOperatingIncome"] == 28653 - q2["operatingIncome"]
        assert q2["eps"] == 1.89
        assert q2["price"] == 182.15
        assert q2["priceDate"] == "2024-06-28"
        assert q2["balanceSheet"] == {
            "cashAndEquivalents": 23466,
            "totalAssets": 407384,
            "totalLiabilities": 114810,
            "totalEquity": 292574,
            "totalDebt": 10883,
        }
        assert q2["cashFlow"]["freeCashFlow"] == 13454
        assert q2["segments"] == {"googleSearch": 48509, "googleCloud": 10347}
        assert list(q2["segmentProfit"]["googleCloud"]) == ["revenue", "operatingIncome"]
        assert q2["investments"] is None

    def test_order_and_pages(self, repo):
        ds = build_dataset(repo, ALPHABET, generated_at=GENERATED)
        labels = [e["label"] for e in ds["quarters"]]
        assert labels == [
            "FY2023 Q1", "FY2023 Q2", "FY2023 Q3", "FY2023 Q4",
            "FY2024 Q1", "FY2024 Q2", "FY2024 Q3",
        ]
        assert [e["hasPage"] for e in ds["quarters"]] == [False, False, False, True, True, True, True]
        assert ds["quarters"][-1]["isOutlook"] is True

    def test_no_financials(self, tmp_path, capsys):
        ds = build_dataset(tmp_path, ALPHABET, generated_at=GENERATED)
        assert ds["quarters"] == []
        assert "no financials.json" in capsys.readouterr().out


class TestQuarterPages:
    def test_navigation_and_chart_window(self, repo):
        ds = build_dataset(repo, ALPHABET, generated_at=GENERATED)
        pages = {entry["label"]: page for entry, page in quarter_pages(ds, chart_quarters=4)}
        assert list(pages) == ["FY2023 Q4", "FY2024 Q1", "FY2024 Q2", "FY2024 Q3"]

        first = pages["FY2023 Q4"]
        assert first["prevPage"] is None
        assert first["nextPage"]["label"] == "FY2024 Q1"

        q2 = pages["FY2024 Q2"]
        assert q2["currentQuarter"] == {"fy": 2024, "q": 2, "label": "FY2024 Q2"}
        assert q2["prevPage"]["label"] == "FY2024 Q1"
        # the outlook quarter is not linked as "next"
        assert q2["nextPage"] is None
        assert [e["label"] for e in q2["quarters"]] == ["FY2023 Q3", "FY2023 Q4", "FY2024 Q1", "FY2024 Q2"]

        assert [e["label"] for e in first["quarters"]][-1] == "FY2023 Q4"
        assert len(first["quarters"]) == 4


class TestWriteSite:
    def test_files(self, repo):
        docs = repo / "docs"
        report = write_site(repo, ALPHABET, docs_dir=docs, generated_at=GENERATED)
        assert report == {"quarters": 7, "pages": 4}

        full = json.loads((docs / "alphabet" / "data.json").read_text(encoding="utf-8"))
        assert len(full["quarters"]) == 7
        page_dir = docs / "alphabet" / "quarters" / "FY2024Q2"
        page = json.loads((page_dir / "data.json").read_text(encoding="utf-8"))
        assert page["currentQuarter"]["label"] == "FY2024 Q2"
        html = (page_dir / "index.html").read_text(encoding="utf-8")
        assert "<title>Alphabet FY2024 Q2</title>" in html
        assert 'data-quarter="FY2024Q2"' in html
        assert not (docs / "alphabet" / "quarters" / "FY2023Q3").exists()

    def test_custom_template(self, repo):
        docs = repo / "docs"
        template = docs / "alphabet" / "quarters" / TEMPLATE_NAME
        template.parent.mkdir(parents=True)
        template.write_text("{{COMPANY}}|{{QUARTER_LABEL}}|{{QUARTER_DIR}}", encoding="utf-8")
        write_site(repo, ALPHABET, docs_dir=docs, generated_at=GENERATED)
        out = (docs / "alphabet" / "quarters" / "FY2024Q1" / "index.html").read_text(encoding="utf-8")
        assert out == "Alphabet|FY2024 Q1|FY2024Q1"

    def test_rerun_is_byte_identical(self, repo):
        docs = repo / "docs"
        write_site(repo, ALPHABET, docs_dir=docs, generated_at=GENERATED)
        files = sorted(p for p in docs.rglob("*") if p.is_file())
        first = {p: p.read_bytes() for p in files}
        write_site(repo, ALPHABET, docs_dir=docs, generated_at=GENERATED)
        assert {p: p.read_bytes() for p in files} == first


def test_render_page_placeholders():
    entry = {"label": "FY2024 Q1", "fy": 2024, "q": 1}
    company = get_company("meta")
    assert quarter_dir_name(entry) == "FY2024Q1"
    out = render_page("{{COMPANY}} & {{QUARTER_LABEL}}", entry, company)
    assert out == "Meta Platforms & FY2024 Q1"
    assert "{{" not in render_page(DEFAULT_TEMPLATE, entry, company)
