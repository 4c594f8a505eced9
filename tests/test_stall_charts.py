"""Chart data checks for the analytics screen."""

import pytest

from stall_charts import (
    METRIC_COLUMNS, cost_breakdown_figure, metrics_frame, profit_distribution_figure, sales_vs_margin_figure,
)
from stall_config import DEFAULT_INGREDIENT_PRICES, MENU_ITEMS
from stall_metrics import MenuItem, compute_metrics


@pytest.fixture
def menu_data():
    menu = [
        MenuItem("a", "A", 70, {"x": 1}),
        MenuItem("b", "B", 50, {"y": 1}),
        MenuItem("c", "C", 20, {"z": 1}),
    ]
    rows, _ = compute_metrics(menu, {"x": 49, "y": 45, "z": 25}, {"a": 3, "b": 9, "c": 4})
    return rows


class TestMetricsFrame:

    def test_one_row_per_item_in_catalog_order(self):
        rows, _ = compute_metrics(MENU_ITEMS, DEFAULT_INGREDIENT_PRICES, {})
        df = metrics_frame(rows)
        assert list(df.columns) == METRIC_COLUMNS
        assert list(df["id"]) == [item.id for item in MENU_ITEMS]

    def test_empty(self):
        df = metrics_frame([])
        assert df.empty
        assert list(df.columns) == METRIC_COLUMNS


class TestFigures:

    def test_profit_pie_skips_non_positive(self, menu_data):
        fig = profit_distribution_figure(menu_data)
        assert sorted(fig.data[0].labels) == ["A", "B"]
        assert fig.layout.title.text == "Profit Contribution by Item (Today)"

    def test_sales_vs_margin_sorted_by_plates(self, menu_data):
        fig = sales_vs_margin_figure(menu_data)
        plates, margin = fig.data
        assert list(plates.x) == ["B", "C", "A"]
        assert list(plates.y) == [9, 4, 3]
        assert margin.yaxis == "y2"
        assert fig.layout.yaxis2.overlaying == "y"

    def test_cost_breakdown_traces(self, menu_data):
        fig = cost_breakdown_figure(menu_data)
        assert {trace.name for trace in fig.data} == {"Ingredient Cost", "Profit"}
