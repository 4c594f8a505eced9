"""
Menu cost / profit engine for StallOS.

Everything here is pure: the caller owns the price table and the sales table
and passes them in on every rerun.
"""

import html
import math
import random
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

PLACEHOLDER_RECOMMENDATION = "Enter today's sales to get a profit recommendation."


@dataclass(frozen=True)
class MenuItem:
    id: str
    name: str
    selling_price: float
    recipe: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemMetrics:
    id: str
    name: str
    selling_price: float
    cost: float
    profit_per_plate: float
    profit_margin: float
    plates_sold: int
    item_revenue: float
    item_profit: float


@dataclass(frozen=True)
class DailyPerformance:
    total_revenue: float = 0.0
    total_overall_profit: float = 0.0

    @property
    def overall_margin(self) -> float:
        if self.total_revenue > 0:
            return self.total_overall_profit / self.total_revenue * 100
        return 0.0


@dataclass(frozen=True)
class RecommendationConfig:
    margin_gap: float = 5.0
    min_top_margin: float = 20.0
    shift_plates: int = 10


def safe_float(x, default=0.0):
    """Convert user input to float, falling back to `default` on junk."""
    if x is None:
        return default
    try:
        if isinstance(x, bool):
            return float(x)
        if isinstance(x, (int, float)):
            if math.isnan(x) or math.isinf(x):
                return default
            return float(x)
        if isinstance(x, str):
            s = x.strip()
            if s == "" or s.lower() in {"nan", "none"}:
                return default
            s = s.replace(",", "")
            return safe_float(float(s), default)
        return safe_float(float(x), default)
    except (TypeError, ValueError, OverflowError):
        return default


def coerce_price(value) -> float:
    return max(0.0, safe_float(value))


def whole_percent(value: float) -> int:
    """Round a percentage to a whole number, halves away from zero."""
    if not math.isfinite(value):
        return 0
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def coerce_plates(value) -> int:
    return max(0, int(safe_float(value)))


def adjust_plates(plates_sold: Mapping[str, int], item_id: str, delta: int) -> dict:
    """Return a new sales table with `item_id` moved by `delta`, floored at zero."""
    updated = dict(plates_sold)
    updated[item_id] = max(0, coerce_plates(updated.get(item_id, 0)) + int(delta))
    return updated


def initial_sales(menu_items: Sequence[MenuItem], rng: random.Random | None = None,
                  low: int = 10, high: int = 59) -> dict:
    """Demo sales for a fresh session: each item gets a random count in [low, high]."""
    rng = rng or random.Random()
    return {item.id: rng.randint(low, high) for item in menu_items}


def item_cost(item: MenuItem, ingredient_prices: Mapping[str, float]) -> float:
    total = 0.0
    for ingredient, quantity in item.recipe.items():
        total += safe_float(quantity) * safe_float(ingredient_prices.get(ingredient, 0.0))
    return total


def compute_metrics(menu_items: Sequence[MenuItem],
                    ingredient_prices: Mapping[str, float],
                    plates_sold: Mapping[str, int]):
    """
    Cost, profit and margin for every menu item plus the day's totals.

    Returns ``(list[ItemMetrics], DailyPerformance)``. Items come back in
    catalog order. Missing or non-numeric prices and counts count as zero.
    Totals are rounded with ``round(x, 2)``; per-item values are left as is.
    """
    total_revenue = 0.0
    total_profit = 0.0
    rows: list[ItemMetrics] = []

    for item in menu_items:
        selling_price = safe_float(item.selling_price)
        cost = item_cost(item, ingredient_prices)
        profit_per_plate = selling_price - cost
        profit_margin = (profit_per_plate / selling_price) * 100 if selling_price > 0 else 0.0
        plates = coerce_plates(plates_sold.get(item.id, 0))
        item_revenue = selling_price * plates
        item_profit = profit_per_plate * plates

        total_revenue += item_revenue
        total_profit += item_profit

        rows.append(ItemMetrics(
            id=item.id,
            name=item.name,
            selling_price=selling_price,
            cost=cost,
            profit_per_plate=profit_per_plate,
            profit_margin=profit_margin,
            plates_sold=plates,
            item_revenue=item_revenue,
            item_profit=item_profit,
        ))

    performance = DailyPerformance(
        total_revenue=round(total_revenue, 2),
        total_overall_profit=round(total_profit, 2),
    )
    return rows, performance


def recommend(item_metrics: Sequence[ItemMetrics],
              config: RecommendationConfig | None = None,
              currency: str = "₹") -> str:
    """
    Pick the best item to upsell.

    Compares only the top-margin item with the next item that still sells
    and trails it by at least ``config.margin_gap`` points. When several
    items share the top margin, catalog order decides which one is named.
    """
    config = config or RecommendationConfig()
    if not item_metrics or all(m.plates_sold == 0 for m in item_metrics):
        return PLACEHOLDER_RECOMMENDATION

    # sorted() is stable with reverse=True, so ties keep catalog order
    ranked = sorted(item_metrics, key=lambda m: m.profit_margin, reverse=True)
    top = ranked[0]
    candidates = [
        m for m in ranked[1:]
        if m.plates_sold > 0 and top.profit_margin - m.profit_margin >= config.margin_gap
    ]

    if top.profit_margin > config.min_top_margin and candidates:
        weaker = candidates[0]
        gain_per_plate = top.profit_per_plate - weaker.profit_per_plate
        extra_profit = gain_per_plate * config.shift_plates
        return (f"**{top.name}** has a **{whole_percent(top.profit_margin)}% margin**. "
                f"Suggesting it over **{weaker.name}** could earn an extra "
                f"**{currency}{extra_profit:.2f}** for every {config.shift_plates} plates shifted.")

    return (f"Market is stable. **{top.name}** is your top earner with a "
            f"**{whole_percent(top.profit_margin)}% profit margin**. Keep it up!")


_EMPHASIS = re.compile(r"\*\*(.*?)\*\*")


def render_emphasis(text: str) -> str:
    """Escape ``text`` for HTML and turn ``**x**`` into ``<strong>x</strong>``."""
    return _EMPHASIS.sub(r"<strong>\1</strong>", html.escape(text or ""))


def metrics_context(item_metrics: Sequence[ItemMetrics],
                    performance: DailyPerformance,
                    currency: str = "₹") -> str:
    """Plain-text fact sheet handed to the assistant as data context."""
    lines = [
        f"- {m.name}: price {currency}{m.selling_price:.2f}, cost {currency}{m.cost:.2f}, "
        f"profit/plate {currency}{m.profit_per_plate:.2f}, margin {m.profit_margin:.1f}%, "
        f"plates sold {m.plates_sold}"
        for m in item_metrics
    ]
    lines.append(f"Total revenue today: {currency}{performance.total_revenue:.2f}")
    lines.append(f"Total profit today: {currency}{performance.total_overall_profit:.2f}")
    return "\n".join(lines)


def profit_insights(item_metrics: Sequence[ItemMetrics], currency: str = "₹") -> str:
    """Top earners, weakest positive margins and loss makers, as a short report."""
    if not item_metrics or all(m.plates_sold == 0 for m in item_metrics):
        return "No sales recorded yet today."

    # 1. top earners by total profit
    stars = sorted(item_metrics, key=lambda m: m.item_profit, reverse=True)[:3]
    star_report = "\n".join(
        f"- '{m.name}' (total profit: {currency}{m.item_profit:.2f}, margin: {m.profit_margin:.1f}%)"
        for m in stars
    )

    # 2. margin traps: lowest positive margins
    traps = sorted((m for m in item_metrics if m.profit_margin > 0), key=lambda m: m.profit_margin)[:3]
    trap_report = "\n".join(
        f"- '{m.name}' (margin: {m.profit_margin:.1f}%)" for m in traps
    ) or "None."

    # 3. items selling at or below cost
    loss = [m for m in item_metrics if m.profit_margin <= 0]
    loss_report = "No loss-making items."
    if loss:
        loss_report = "\n".join(f"- '{m.name}' (margin: {m.profit_margin:.1f}%)" for m in loss)

    return (f"[Top earners (profit top 3)]\n{star_report}\n\n"
            f"[Margin traps (lowest 3)]\n{trap_report}\n\n"
            f"[Loss-making items (margin <= 0)]\n{loss_report}")
