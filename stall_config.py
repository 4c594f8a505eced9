# ==============================================================
# StallOS configuration: menu catalog, default prices, settings
# ==============================================================

import os
from dataclasses import dataclass
from typing import Mapping

import streamlit as st

from stall_metrics import MenuItem, RecommendationConfig, safe_float

# ----------------------
# Menu catalog (fixed at startup)
# ----------------------
MENU_ITEMS = (
    MenuItem("onion-uttapam", "Onion Uttapam", 70,
             {"onions": 0.1, "rice": 0.05, "flour": 0.05, "oil": 0.01, "salt": 0.001, "spices": 0.002}),
    MenuItem("masala-dosa", "Masala Dosa", 85,
             {"potatoes": 0.15, "rice": 0.07, "lentils": 0.03, "onions": 0.03, "oil": 0.01,
              "salt": 0.001, "spices": 0.003}),
    MenuItem("idli-sambar", "Idli Sambar", 60,
             {"rice": 0.1, "lentils": 0.05, "tomatoes": 0.05, "spices": 0.005, "salt": 0.001}),
    MenuItem("cheese-uttapam", "Cheese Uttapam", 90,
             {"cheese": 0.05, "rice": 0.05, "flour": 0.05, "onions": 0.02, "oil": 0.01,
              "salt": 0.001, "spices": 0.002}),
    MenuItem("plain-dosa", "Plain Dosa", 50,
             {"rice": 0.08, "lentils": 0.02, "oil": 0.005, "salt": 0.001}),
)

# price per kg / L
DEFAULT_INGREDIENT_PRICES = {
    "onions": 30, "potatoes": 25, "tomatoes": 40, "lentils": 80, "rice": 50,
    "flour": 35, "cheese": 200, "oil": 120, "salt": 10, "spices": 15,
}

TIFFIN_ITEMS = ["Idli", "Dosa", "Vada", "Upma", "Poori", "Pongal", "Uthappam", "Kesari"]

AI_PROVIDERS = ("openai", "gemini")


@dataclass(frozen=True)
class Settings:
    ai_provider: str = "openai"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    transcription_model: str = "whisper-1"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    request_timeout: float = 30.0
    currency_symbol: str = "₹"
    vendor_name: str = "Rajesh's Chaat Corner"
    location: str = "Hyderabad, Telangana"
    margin_gap: float = 5.0
    min_top_margin: float = 20.0
    shift_plates: int = 10

    def recommendation_config(self) -> RecommendationConfig:
        return RecommendationConfig(
            margin_gap=self.margin_gap,
            min_top_margin=self.min_top_margin,
            shift_plates=self.shift_plates,
        )


def read_secrets() -> dict:
    """`st.secrets` as a plain dict; empty when no secrets.toml exists."""
    try:
        return dict(st.secrets)
    except Exception:
        return {}


def _section(secrets: Mapping, name: str) -> Mapping:
    val = secrets.get(name)
    return val if isinstance(val, Mapping) else {}


def _first(*values):
    for v in values:
        if v not in (None, ""):
            return v
    return None


def load_settings(secrets: Mapping | None = None, environ: Mapping | None = None) -> Settings:
    """
    Build Settings from secrets.toml first, then environment variables.

    secrets.toml layout::

        ai_provider = "openai"
        currency_symbol = "₹"

        [openai]
        api_key = "sk-..."
        model = "gpt-4o-mini"

        [gemini]
        api_key = "..."

        [recommendation]
        margin_gap = 5
        min_top_margin = 20
        shift_plates = 10
    """
    secrets = read_secrets() if secrets is None else secrets
    environ = os.environ if environ is None else environ
    defaults = Settings()

    openai_cfg = _section(secrets, "openai")
    gemini_cfg = _section(secrets, "gemini")
    rec_cfg = _section(secrets, "recommendation")

    provider = str(_first(secrets.get("ai_provider"), environ.get("STALLOS_AI_PROVIDER"),
                          defaults.ai_provider)).strip().lower()
    if provider not in AI_PROVIDERS:
        provider = defaults.ai_provider

    shift_plates = int(safe_float(_first(rec_cfg.get("shift_plates"), environ.get("STALLOS_SHIFT_PLATES")),
                                  defaults.shift_plates))

    return Settings(
        ai_provider=provider,
        openai_api_key=_first(openai_cfg.get("api_key"), environ.get("OPENAI_API_KEY")),
        openai_model=_first(openai_cfg.get("model"), environ.get("STALLOS_OPENAI_MODEL"), defaults.openai_model),
        transcription_model=_first(openai_cfg.get("transcription_model"), defaults.transcription_model),
        gemini_api_key=_first(gemini_cfg.get("api_key"), environ.get("GEMINI_API_KEY")),
        gemini_model=_first(gemini_cfg.get("model"), environ.get("STALLOS_GEMINI_MODEL"), defaults.gemini_model),
        request_timeout=safe_float(_first(secrets.get("request_timeout"), environ.get("STALLOS_REQUEST_TIMEOUT")),
                                   defaults.request_timeout),
        currency_symbol=_first(secrets.get("currency_symbol"), environ.get("STALLOS_CURRENCY"),
                               defaults.currency_symbol),
        vendor_name=_first(secrets.get("vendor_name"), environ.get("STALLOS_VENDOR_NAME"), defaults.vendor_name),
        location=_first(secrets.get("location"), environ.get("STALLOS_LOCATION"), defaults.location),
        margin_gap=safe_float(_first(rec_cfg.get("margin_gap"), environ.get("STALLOS_MARGIN_GAP")),
                              defaults.margin_gap),
        min_top_margin=safe_float(_first(rec_cfg.get("min_top_margin"), environ.get("STALLOS_MIN_TOP_MARGIN")),
                                  defaults.min_top_margin),
        shift_plates=max(1, shift_plates),
    )


def format_currency(x: float, symbol: str = "₹") -> str:
    """Number as a currency string with two decimals."""
    try:
        return f"{symbol}{x:,.2f}"
    except (TypeError, ValueError):
        return "-"
