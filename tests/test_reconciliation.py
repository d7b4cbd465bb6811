"""Quarter reconciliation: Q4 derivation, year-to-date conversion and merge policies."""
import pytest

from qfilings.reconciliation import (
    KEEP_FIRST,
    PREFER_LATEST,
    QuarterStore,
    compute_q4,
    merge_record,
    read_json,
    write_json,
    ytd_to_quarter,
)


class TestComputeQ4:
    def test_sum_property(self):
        annual = {"revenue": 350018, "operatingIncome": 112390}
        qs = [
            {"revenue": 80539, "operatingIncome": 25472},
            {"revenue": 84742, "operatingIncome": 27425},
            {"revenue": 88268, "operatingIncome": 28521},
        ]
        q4 = compute_q4(annual, qs)
        for m in annual:
            assert q4[m] + sum(q[m] for q in qs) == annual[m]

    def test_metric_missing_in_a_quarter_is_absent(self):
        annual = {"revenue": 100, "netIncome": 40}
        qs = [{"revenue": 20, "netIncome": 10}, {"revenue": 25}, {"revenue": 30, "netIncome": 10}]
        q4 = compute_q4(annual, qs)
        assert q4 == {"revenue": 25}

    def test_null_is_never_zero_filled(self):
        q4 = compute_q4({"revenue": 100}, [{"revenue": 20}, {"revenue": None}, {"revenue": 30}])
        assert "revenue" not in q4

    def test_missing_quarter_yields_nothing(self):
        assert compute_q4({"revenue": 100}, [{"revenue": 20}, None, {"revenue": 30}]) == {}

    def test_per_share_keys_skipped(self):
        q4 = compute_q4({"revenue": 10, "epsDiluted": 8.0}, [{"revenue": 1, "epsDiluted": 2.0}] * 3)
        assert q4 == {"revenue": 7}

    def test_nested_segments(self):
        annual = {"dataCenter": {"revenue": 100, "operatingIncome": 50}, "gaming": {"revenue": 40}}
        qs = [
            {"dataCenter": {"revenue": 20, "operatingIncome": 10}, "gaming": {"revenue": 10}},
            {"dataCenter": {"revenue": 25, "operatingIncome": 12}, "gaming": {"operatingIncome": 1}},
            {"dataCenter": {"revenue": 30, "operatingIncome": 13}, "gaming": {"revenue": 10}},
        ]
        q4 = compute_q4(annual, qs)
        assert q4 == {"dataCenter": {"revenue": 25, "operatingIncome": 15}}

    def test_decimal_noise_rounded(self):
        q4 = compute_q4({"revenue": 868.5}, [{"revenue": 200.1}, {"revenue": 220.2}, {"revenue": 230.1}])
        assert q4["revenue"] == pytest.approx(218.1)
        assert q4["revenue"] == round(q4["revenue"], 6)


class TestYtdToQuarter:
    def test_nine_months(self):
        out = ytd_to_quarter({"operatingCF": 90, "capex": -30}, [{"operatingCF": 20, "capex": -10}, {"operatingCF": 30, "capex": -10}])
        assert out == {"operatingCF": 40, "capex": -10}

    def test_missing_prior_not_converted(self, capsys):
        out = ytd_to_quarter({"operatingCF": 90}, [{"operatingCF": 20}, None], context="[x] ")
        assert out == {}
        assert "WARNING" in capsys.readouterr().out


class TestMergePolicies:
    def test_keep_first(self):
        rec = {"cash": 1, "debt": None}
        merge_record(rec, {"cash": 2, "debt": 5, "assets": 9}, KEEP_FIRST)
        assert rec == {"cash": 1, "debt": 5, "assets": 9}

    def test_prefer_latest_null_never_erases(self):
        rec = {"revenue": 100, "netIncome": 10}
        merge_record(rec, {"revenue": 101, "netIncome": None}, PREFER_LATEST)
        assert rec == {"revenue": 101, "netIncome": 10}

    def test_nested(self):
        rec = {"cloud": {"revenue": 1}}
        merge_record(rec, {"cloud": {"revenue": 2, "operatingIncome": 3}}, PREFER_LATEST)
        assert rec == {"cloud": {"revenue": 2, "operatingIncome": 3}}

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            merge_record({}, {}, "newest")


class TestQuarterStore:
    def test_finalize_derives_q4_without_overwriting(self):
        store = QuarterStore(PREFER_LATEST)
        store.put(2024, 1, {"revenue": 10, "netIncome": 1})
        store.put(2024, 2, {"revenue": 20, "netIncome": 2})
        store.put(2024, 3, {"revenue": 30, "netIncome": 3})
        store.put(2024, 4, {"revenue": 41})
        store.put_annual(2024, {"revenue": 100, "netIncome": 10})
        store.finalize()
        assert store.get(2024, 4) == {"revenue": 41, "netIncome": 4}

    def test_finalize_converts_ytd_then_q4(self):
        store = QuarterStore(PREFER_LATEST)
        store.put_ytd(2024, 1, {"operatingCF": 10})
        store.put_ytd(2024, 2, {"operatingCF": 25})
        store.put_ytd(2024, 3, {"operatingCF": 45})
        store.put_annual(2024, {"operatingCF": 70})
        store.finalize()
        assert [store.get(2024, q)["operatingCF"] for q in (1, 2, 3, 4)] == [10, 15, 20, 25]

    def test_to_json_sorted(self):
        store = QuarterStore(KEEP_FIRST)
        store.put(2024, 2, {"cash": 2})
        store.put(2023, 4, {"cash": 1})
        store.put(2024, 1, {})
        data = store.to_json()
        assert list(data) == ["FY2023", "FY2024"]
        assert list(data["FY2024"]) == ["Q2"]
        assert QuarterStore.from_json(data).to_json() == data

    def test_write_json_stable(self, tmp_path):
        path = tmp_path / "out" / "x.json"
        write_json(path, {"FY2024": {"Q1": {"revenue": 1}}})
        first = path.read_bytes()
        write_json(path, read_json(path))
        assert path.read_bytes() == first
        assert read_json(tmp_path / "missing.json", default={}) == {}
