import sys
from pathlib import Path

import pytest

# modules live at the repository root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stall_metrics import ItemMetrics, MenuItem  # noqa: E402


@pytest.fixture
def two_item_catalog():
    """A sells at 70 with cost 49 (30% margin), B at 50 with cost 45 (10% margin)."""
    menu = [
        MenuItem("a", "A", 70, {"x": 1}),
        MenuItem("b", "B", 50, {"y": 1}),
    ]
    prices = {"x": 49, "y": 45}
    return menu, prices


def make_metrics(name, margin, plates, profit_per_plate=10.0, selling_price=100.0):
    return ItemMetrics(
        id=name.lower(),
        name=name,
        selling_price=selling_price,
        cost=selling_price - profit_per_plate,
        profit_per_plate=profit_per_plate,
        profit_margin=margin,
        plates_sold=plates,
        item_revenue=selling_price * plates,
        item_profit=profit_per_plate * plates,
    )


@pytest.fixture
def metrics_factory():
    return make_metrics
