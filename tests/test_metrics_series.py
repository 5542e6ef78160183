"""Tests for running-inventory aggregation, pivoting and the series payload."""

import math

from core.data import normalize_record
from core.filters import DashboardFilters
from core.metrics_series import aggregate_series, build_pivot, compute_series, pivot_frame
from tests.conftest import ANCHOR, make_record


def _rows(**kwargs):
    return normalize_record(make_record(**kwargs), ANCHOR)


class TestAggregateSeries:
    def test_running_inventory_scenario(self):
        rows = _rows(opening=100, days={1: (20, 1, 10, 2), 2: (0, 1, 5, 2), 3: (50, 1, 0, 2)})
        series = aggregate_series(["P001"], rows)
        assert [series["P001"][d]["inventory"] for d in (1, 2, 3)] == [110, 105, 155]

    def test_inventory_floored_at_zero(self):
        rows = _rows(opening=5, days={1: (None, None, 50, 1)})
        assert aggregate_series(["P001"], rows)["P001"][1]["inventory"] == 0

    def test_running_balance_is_not_clamped_between_days(self):
        rows = _rows(opening=5, days={1: (None, None, 50, 1), 2: (100, 1, None, None)})
        series = aggregate_series(["P001"], rows)["P001"]
        assert series[1]["inventory"] == 0
        assert series[2]["inventory"] == 55

    def test_missing_opening_defaults_to_zero(self):
        rows = _rows(opening=None, days={1: (7, 1, 2, 1)})
        assert aggregate_series(["P001"], rows)["P001"][1]["inventory"] == 5

    def test_inventory_rounding(self):
        rows = _rows(opening=10.5, days={1: (None, None, None, None)})
        assert aggregate_series(["P001"], rows)["P001"][1]["inventory"] == 11

    def test_amounts(self):
        rows = _rows(days={1: (3, 2.5, 4, 1.5), 2: (1, 2.345, None, 9)})
        series = aggregate_series(["P001"], rows)["P001"]
        assert series[1]["procurement_amount"] == 7.5
        assert series[1]["sales_amount"] == 6.0
        assert series[2]["procurement_amount"] == 2.35
        assert series[2]["sales_amount"] == 0.0

    def test_missing_day_carries_inventory(self):
        rows = [r for r in _rows(opening=50, days={1: (10, 1, 0, 0), 3: (0, 0, 20, 1)}) if r["day_index"] != 2]
        series = aggregate_series(["P001"], rows)["P001"]
        assert sorted(series) == [1, 3]
        assert series[3]["inventory"] == 40

    def test_unsorted_and_invalid_day_rows(self):
        rows = _rows(opening=10, days={1: (5, 1, 0, 0), 2: (0, 0, 3, 1)})
        rows = [rows[2], rows[1], rows[0], {**rows[0], "day_index": None, "procurement_qty": 999}]
        series = aggregate_series(["P001"], rows)["P001"]
        assert sorted(series) == [1, 2, 3]
        assert series[1]["inventory"] == 15
        assert series[2]["inventory"] == 12
        assert series[3]["inventory"] == 12

    def test_huge_finite_values(self):
        rows = _rows(opening=None, days={1: (1e200, 1e200, None, None), 2: (1e30, 1, None, None)})
        series = aggregate_series(["P001"], rows)["P001"]
        assert series[1]["inventory"] == int(1e200)
        assert math.isinf(series[1]["procurement_amount"])
        assert series[2]["procurement_amount"] == 1e30

    def test_overflowing_balance(self):
        rows = _rows(opening=1.5e308, days={1: (1.5e308, 1, None, None)})
        assert math.isinf(aggregate_series(["P001"], rows)["P001"][1]["inventory"])
        rows = _rows(opening=-1.5e308, days={1: (None, None, 1.5e308, 1)})
        assert aggregate_series(["P001"], rows)["P001"][1]["inventory"] == 0

    def test_persisted_string_values(self):
        rows = [
            {"product_id": "P1", "day_index": 1, "opening_inventory_day1": "10", "procurement_qty": "2", "procurement_price": "1.5"},
        ]
        point = aggregate_series(["P1"], rows)["P1"][1]
        assert point["inventory"] == 12
        assert point["procurement_amount"] == 3.0

    def test_only_selected_products_in_selection_order(self):
        rows = _rows(pid="A") + _rows(pid="B") + _rows(pid="C")
        series = aggregate_series(["C", "A", "missing"], rows)
        assert list(series) == ["C", "A"]

    def test_none_selection_keeps_all(self):
        rows = _rows(pid="A") + _rows(pid="B")
        assert sorted(aggregate_series(None, rows)) == ["A", "B"]

    def test_recomputation_is_idempotent(self):
        rows = _rows(days={1: (1, 1, 1, 1)})
        assert aggregate_series(["P001"], rows) == aggregate_series(["P001"], rows)


class TestBuildPivot:
    def test_always_three_rows(self):
        rows = [r for r in _rows(days={2: (1, 2, 0, 0)}) if r["day_index"] == 2]
        pivot = build_pivot(aggregate_series(["P001"], rows))
        assert [p["label"] for p in pivot] == ["Day 1", "Day 2", "Day 3"]
        assert pivot[0] == {"label": "Day 1"}
        assert pivot[2] == {"label": "Day 3"}
        assert pivot[1]["P001__procAmt"] == 2.0
        assert set(pivot[1]) == {"label", "P001__inventory", "P001__procAmt", "P001__salesAmt"}

    def test_empty_series(self):
        assert build_pivot({}) == [{"label": "Day 1"}, {"label": "Day 2"}, {"label": "Day 3"}]

    def test_sparse_keys_per_product(self):
        a = _rows(pid="A")
        b = [r for r in _rows(pid="B") if r["day_index"] == 3]
        pivot = build_pivot(aggregate_series(["A", "B"], a + b))
        assert "B__inventory" not in pivot[0]
        assert "B__inventory" in pivot[2]
        assert "A__inventory" in pivot[0]

    def test_pivot_frame_long_format(self):
        pivot = build_pivot(aggregate_series(["P001"], _rows()))
        frame = pivot_frame(pivot)
        assert len(frame) == 9
        assert set(frame["metric"]) == {"inventory", "procAmt", "salesAmt"}
        assert pivot_frame(build_pivot({})).empty

    def test_pivot_frame_blanks_infinite_values(self):
        rows = _rows(days={1: (1e200, 1e200, None, None)})
        frame = pivot_frame(build_pivot(aggregate_series(["P001"], rows)))
        day1 = frame[(frame["label"] == "Day 1") & (frame["metric"] == "procAmt")]
        assert day1["value"].isna().all()

    def test_pivot_frame_product_id_with_separator(self):
        frame = pivot_frame([{"label": "Day 1", "A__B__inventory": 3}])
        assert frame.iloc[0]["product_id"] == "A__B"
        assert frame.iloc[0]["metric"] == "inventory"


class TestComputeSeries:
    def test_payload(self):
        rows = _rows(pid="P001", name="Widget", opening=100, days={1: (20, 1, 10, 2)})
        ctx = {"rows": rows, "products": [{"id": "P001", "name": "Widget"}]}
        payload = compute_series(DashboardFilters(selected_products=["P001"]), ctx)
        assert payload["filters"] == {"selected_products": ["P001"]}
        assert payload["pivot"][0]["P001__inventory"] == 110
        assert payload["legend"]["P001__salesAmt"]["label"] == "Widget • Sales Amount"
        assert payload["styles"]["P001__procAmt"]["dash"] == "6 4"
        assert isinstance(payload["chart"], dict)
        assert "layer" in payload["chart"]

    def test_no_selection(self):
        payload = compute_series(DashboardFilters(), {"rows": [], "products": []})
        assert payload["chart"] is None
        assert len(payload["pivot"]) == 3
        assert payload["legend"] == {}
