"""
LLM helpers for StallOS (AI Sous-Chef, Zero-Waste Genius, Daily Strategy, Chaat-GPT).

Two providers sit behind the same small interface:

    assistant.get_suggestion(prompt, system=None, json_mode=False) -> str
    assistant.converse(messages, system=None) -> str

Failures are raised as AssistantError subclasses so the screens can show
a readable message instead of a traceback.
"""

import json
import logging
from typing import Iterable, Mapping, Sequence

import openai
import requests

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class AssistantError(Exception):
    """Base class for everything the assistant can fail with."""


class ConfigurationError(AssistantError):
    """Missing or rejected API key, or a feature the provider does not offer."""


class NetworkError(AssistantError):
    """Connection failure or any non-quota API error."""


class QuotaError(AssistantError):
    """HTTP 429 or `openai.RateLimitError`: quota or rate limit exhausted."""


class InvalidResponseError(AssistantError):
    """Reply with no usable text, or malformed JSON where JSON was asked for."""


# ----------------------
# Prompts
# ----------------------
SOUS_CHEF_PROMPT = (
    "You are Chaat-GPT, an expert AI sous-chef for Indian street food vendors. Your tone is helpful, "
    "concise, and you understand Hinglish. A vendor has described their ingredients. Provide an actionable "
    "cooking adjustment. Do not start with \"Okay, here's...\". Get straight to the point. "
    "Vendor's input: \"{text}\""
)

ZERO_WASTE_SYSTEM = (
    "You are \"Chaat-GPT\", an expert culinary assistant for Indian street food vendors. You specialize in "
    "creating delicious, sellable items from leftovers to minimize waste and maximize profit. Your tone is "
    "creative and encouraging. Your task is to take a list of leftover ingredients and generate a simple, "
    "appealing recipe suitable for a street food stall. The output must be a valid JSON object with two keys: "
    "\"recipeName\" (a catchy, marketable name for the dish) and \"instructions\" (clear, step-by-step "
    "instructions for preparation, written in a simple, friendly tone, possibly using some Hinglish terms "
    "like 'tadka' or 'bhun-lo')."
)

STRATEGY_PROMPT = (
    "As a sales strategist for a Tiffin Hotel, analyze the following daily data for various tiffin items:\n"
    "{details}\n"
    "Based on this information, provide a specific, actionable daily sales strategy. Consider pricing "
    "adjustments, marketing focus (e.g., promotions, highlighting specific items), menu recommendations, and "
    "operational efficiency improvements. Present the strategy in a clear, concise bullet-point format, with "
    "each point being a distinct actionable step. Ensure each point starts on a new line."
)

CHAT_SYSTEM = (
    "You are \"Chaat-GPT,\" a specialized AI sous-chef and business analyst for Indian street food vendors. "
    "Your persona is helpful, concise, and friendly. You understand Hinglish (Telugu + Hindi + English) "
    "perfectly. Your goal is to help vendors maximize profit and maintain quality. You have three core "
    "functions: 1. **AI Sous-Chef:** When the user describes their ingredients (e.g., \"tomatoes are sour,\" "
    "\"chilies are mild\"), provide precise, simple recipe adjustments to maintain taste consistency. Give "
    "measurements in grams, ml, and simple terms like 'chutki bhar' (a pinch). 2. **Profit Optimizer:** "
    "When the user gives you ingredient prices, calculate per-plate costs and suggest which high-margin dish "
    "to promote for the day. Be direct and give clear, actionable advice. 3. **Zero-Waste Genius:** When the "
    "user tells you their leftover ingredients, generate a simple, creative recipe to sell the next day as a "
    "\"special.\" Name the new dish. Always be ready to switch between these roles based on the user's "
    "commands."
)

CHAT_GREETING = "Namaste! Main Chaat-GPT hoon. How can I help you manage your stall today?"


# ----------------------
# Providers
# ----------------------
class OpenAIAssistant:
    """Chat completions + Whisper through the official openai SDK."""

    name = "openai"

    def __init__(self, api_key: str | None, model: str = "gpt-4o-mini",
                 transcription_model: str = "whisper-1", timeout: float = 30.0, client=None):
        if client is None:
            if not api_key:
                raise ConfigurationError(
                    "OpenAI API key is not set. Add [openai] api_key to .streamlit/secrets.toml "
                    "or set OPENAI_API_KEY."
                )
            client = openai.OpenAI(api_key=api_key, timeout=timeout)
        self.client = client
        self.model = model
        self.transcription_model = transcription_model

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except openai.RateLimitError as e:
            logger.warning("OpenAI quota/rate limit hit: %s", e)
            raise QuotaError("The AI service quota is exhausted or rate limited. Please try again later.") from e
        except openai.AuthenticationError as e:
            logger.warning("OpenAI rejected the API key: %s", e)
            raise ConfigurationError("The OpenAI API key is invalid. Check .streamlit/secrets.toml.") from e
        except openai.APIConnectionError as e:
            logger.warning("OpenAI connection failed: %s", e)
            raise NetworkError("Could not reach the AI service. Check your internet connection.") from e
        except openai.APIError as e:
            logger.warning("OpenAI API error: %s", e)
            raise NetworkError(f"API Error: {e}") from e

    def converse(self, messages: Sequence[Mapping[str, str]], system: str | None = None,
                 json_mode: bool = False) -> str:
        payload = []
        if system:
            payload.append({"role": "system", "content": system})
        payload.extend({"role": m["role"], "content": m["content"]} for m in messages)

        kwargs = {"model": self.model, "messages": payload}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.info("OpenAI request: model=%s messages=%d", self.model, len(payload))
        response = self._call(self.client.chat.completions.create, **kwargs)
        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise InvalidResponseError("No recommendation received from the AI.") from e
        if not text:
            raise InvalidResponseError("No recommendation received from the AI.")
        return text

    def get_suggestion(self, prompt: str, system: str | None = None, json_mode: bool = False) -> str:
        return self.converse([{"role": "user", "content": prompt}], system=system, json_mode=json_mode)

    def transcribe(self, audio_bytes: bytes, filename: str = "voice.wav", language: str = "en") -> str:
        """Speech to text for the voice buttons."""
        result = self._call(
            self.client.audio.transcriptions.create,
            model=self.transcription_model,
            file=(filename, audio_bytes),
            language=language,
        )
        text = getattr(result, "text", None)
        if not text:
            raise InvalidResponseError("Could not understand the recording. Please type instead.")
        return text.strip()


class GeminiAssistant:
    """Gemini generateContent over plain HTTP."""

    name = "gemini"

    def __init__(self, api_key: str | None, model: str = "gemini-2.5-flash", timeout: float = 30.0,
                 session=None):
        if not api_key:
            raise ConfigurationError(
                "Gemini API key is not set. Add [gemini] api_key to .streamlit/secrets.toml "
                "or set GEMINI_API_KEY."
            )
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.http = session or requests

    def converse(self, messages: Sequence[Mapping[str, str]], system: str | None = None,
                 json_mode: bool = False) -> str:
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [{"text": m["content"]}]}
            for m in messages
        ]
        payload = {"contents": contents}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if json_mode:
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        url = GEMINI_URL.format(model=self.model)
        logger.info("Gemini request: model=%s messages=%d", self.model, len(contents))
        try:
            res = self.http.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("Gemini connection failed: %s", e)
            raise NetworkError("Could not reach the AI service. Check your internet connection.") from e

        if res.status_code != 200:
            message = _gemini_error_message(res)
            logger.warning("Gemini returned %s: %s", res.status_code, message)
            if res.status_code == 429:
                raise QuotaError(f"API Error: {message}")
            if res.status_code in (401, 403):
                raise ConfigurationError(f"API Error: {message}")
            raise NetworkError(f"API Error: {message}")

        try:
            data = res.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError("No recommendation received from the AI.") from e
        if not text:
            raise InvalidResponseError("No recommendation received from the AI.")
        return text

    def get_suggestion(self, prompt: str, system: str | None = None, json_mode: bool = False) -> str:
        return self.converse([{"role": "user", "content": prompt}], system=system, json_mode=json_mode)

    def transcribe(self, audio_bytes: bytes, filename: str = "voice.wav", language: str = "en") -> str:
        raise ConfigurationError("Voice input needs the OpenAI provider. Please type instead.")


def _gemini_error_message(res) -> str:
    try:
        return res.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return "Something went wrong"


def build_assistant(settings):
    """Provider chosen by `settings.ai_provider`."""
    if settings.ai_provider == "gemini":
        return GeminiAssistant(settings.gemini_api_key, model=settings.gemini_model,
                               timeout=settings.request_timeout)
    return OpenAIAssistant(settings.openai_api_key, model=settings.openai_model,
                           transcription_model=settings.transcription_model,
                           timeout=settings.request_timeout)


# ----------------------
# Features
# ----------------------
def sous_chef_advice(assistant, text: str) -> str:
    if not (text or "").strip():
        raise ValueError("Please describe your ingredients first!")
    return assistant.get_suggestion(SOUS_CHEF_PROMPT.format(text=text.strip()))


def zero_waste_recipe(assistant, leftovers: str) -> dict:
    """Returns {"recipe_name": ..., "instructions": ...}."""
    if not (leftovers or "").strip():
        raise ValueError("Please enter your leftover ingredients.")
    raw = assistant.get_suggestion(
        f"Here are my leftovers: {leftovers.strip()}",
        system=ZERO_WASTE_SYSTEM,
        json_mode=True,
    )
    try:
        data = json.loads(_strip_code_fence(raw))
        recipe = {"recipe_name": data["recipeName"], "instructions": data["instructions"]}
    except (ValueError, KeyError, TypeError) as e:
        raise InvalidResponseError("Failed to generate a valid recipe.") from e
    if not recipe["recipe_name"] or not recipe["instructions"]:
        raise InvalidResponseError("Failed to generate a valid recipe.")
    return recipe


def _strip_code_fence(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        s = s.strip("`")
        if s.lower().startswith("json"):
            s = s[4:]
    return s.strip()


def validate_strategy_entries(entries: Sequence[Mapping]) -> None:
    if not entries:
        raise ValueError("Please add at least one tiffin item to get a strategy.")
    for e in entries:
        item = (e.get("tiffin_item") or "").strip()
        missing = [k for k in ("ingredient_price", "daily_sales", "per_plate_profit")
                   if str(e.get(k, "")).strip() == ""]
        if not item or item == "Select an item" or missing:
            raise ValueError("Please fill in all input fields and select a Tiffin Item for all added entries.")


def strategy_prompt(entries: Iterable[Mapping]) -> str:
    details = "".join(
        f"- Tiffin Item: {e['tiffin_item']}\n"
        f"  - Daily Ingredient Price: {e['ingredient_price']} INR\n"
        f"  - Daily Sales (Plates): {e['daily_sales']}\n"
        f"  - Per Plate Profit: {e['per_plate_profit']} INR\n"
        for e in entries
    )
    return STRATEGY_PROMPT.format(details=details)


def daily_strategy(assistant, entries: Sequence[Mapping]) -> str:
    validate_strategy_entries(entries)
    return assistant.get_suggestion(strategy_prompt(entries))


def chat_reply(assistant, history: Sequence[Mapping[str, str]], data_context: str = "") -> str:
    """
    Next Chaat-GPT turn. `data_context` holds today's real numbers; the
    model is told to treat them as facts and not invent figures.
    """
    system = CHAT_SYSTEM
    if data_context:
        system += (
            "\n\nThe following is the vendor's real data for today. Treat it as fact and "
            "never make numbers up.\n"
            f"--- [Stall data] ---\n{data_context}\n--- [End of data] ---"
        )
    messages = [m for m in history if m.get("role") in ("user", "assistant") and m.get("content")]
    # conversations must open with a user turn (drops the canned greeting)
    while messages and messages[0]["role"] == "assistant":
        messages = messages[1:]
    if not messages or messages[-1]["role"] != "user":
        raise ValueError("Ask Chaat-GPT something first.")
    return assistant.converse(messages, system=system)
