"""
Tests for the LLM wrappers. No network: the openai client and the HTTP
session are replaced with small fakes.
"""

import json
from types import SimpleNamespace

import httpx
import openai
import pytest
import requests

from stall_ai import (
    CHAT_GREETING,
    ConfigurationError,
    GeminiAssistant,
    InvalidResponseError,
    NetworkError,
    OpenAIAssistant,
    QuotaError,
    build_assistant,
    chat_reply,
    daily_strategy,
    sous_chef_advice,
    strategy_prompt,
    zero_waste_recipe,
)
from stall_config import Settings

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


# =============================================================================
# FAKES
# =============================================================================

class FakeCompletions:
    def __init__(self, content="Add a pinch of jaggery.", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeTranscriptions:
    def __init__(self, text="tamatar khatte hain"):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(text=self.text)


def fake_openai_client(completions=None, transcriptions=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions or FakeCompletions()),
        audio=SimpleNamespace(transcriptions=transcriptions or FakeTranscriptions()),
    )


def status_error(cls, status):
    request = httpx.Request("POST", OPENAI_URL)
    return cls("boom", response=httpx.Response(status, request=request), body=None)


class FakeResponse:
    def __init__(self, status_code, payload=None, raw=None):
        self.status_code = status_code
        self.payload = payload
        self.raw = raw

    def json(self):
        if self.raw is not None:
            return json.loads(self.raw)
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def gemini_ok(text):
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


class StubAssistant:
    """Records prompts and replays a canned answer."""

    def __init__(self, answer="ok"):
        self.answer = answer
        self.prompts = []
        self.conversations = []

    def get_suggestion(self, prompt, system=None, json_mode=False):
        self.prompts.append((prompt, system, json_mode))
        return self.answer

    def converse(self, messages, system=None, json_mode=False):
        self.conversations.append((list(messages), system))
        return self.answer


# =============================================================================
# OPENAI
# =============================================================================

class TestOpenAIAssistant:

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            OpenAIAssistant(None)

    def test_returns_message_content(self):
        completions = FakeCompletions("Use less tamarind.")
        assistant = OpenAIAssistant(None, model="gpt-test", client=fake_openai_client(completions))
        assert assistant.get_suggestion("sour tomatoes", system="be brief") == "Use less tamarind."
        call = completions.calls[0]
        assert call["model"] == "gpt-test"
        assert call["messages"][0] == {"role": "system", "content": "be brief"}
        assert call["messages"][1] == {"role": "user", "content": "sour tomatoes"}
        assert "response_format" not in call

    def test_json_mode(self):
        completions = FakeCompletions("{}")
        OpenAIAssistant(None, client=fake_openai_client(completions)).get_suggestion("x", json_mode=True)
        assert completions.calls[0]["response_format"] == {"type": "json_object"}

    def test_empty_content_is_invalid_response(self):
        assistant = OpenAIAssistant(None, client=fake_openai_client(FakeCompletions(content=None)))
        with pytest.raises(InvalidResponseError):
            assistant.get_suggestion("x")

    @pytest.mark.parametrize("error, expected", [
        (status_error(openai.RateLimitError, 429), QuotaError),
        (status_error(openai.AuthenticationError, 401), ConfigurationError),
        (status_error(openai.InternalServerError, 500), NetworkError),
        (openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL)), NetworkError),
    ])
    def test_error_mapping(self, error, expected):
        assistant = OpenAIAssistant(None, client=fake_openai_client(FakeCompletions(error=error)))
        with pytest.raises(expected):
            assistant.get_suggestion("x")

    def test_transcribe(self):
        transcriptions = FakeTranscriptions("  mirchi teekhi nahi hai ")
        assistant = OpenAIAssistant(None, client=fake_openai_client(transcriptions=transcriptions))
        assert assistant.transcribe(b"RIFF....", filename="clip.wav") == "mirchi teekhi nahi hai"
        call = transcriptions.calls[0]
        assert call["model"] == "whisper-1"
        assert call["file"] == ("clip.wav", b"RIFF....")

    def test_transcribe_empty_text(self):
        assistant = OpenAIAssistant(None, client=fake_openai_client(transcriptions=FakeTranscriptions("")))
        with pytest.raises(InvalidResponseError):
            assistant.transcribe(b"...")


# =============================================================================
# GEMINI
# =============================================================================

class TestGeminiAssistant:

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            GeminiAssistant("")

    def test_request_shape_and_text(self):
        session = FakeSession(gemini_ok("Add jaggery."))
        assistant = GeminiAssistant("g-key", model="gemini-test", timeout=5, session=session)
        assert assistant.get_suggestion("sour", system="be brief", json_mode=True) == "Add jaggery."

        url, kwargs = session.calls[0]
        assert url.endswith("/models/gemini-test:generateContent")
        assert kwargs["params"] == {"key": "g-key"}
        assert kwargs["timeout"] == 5
        payload = kwargs["json"]
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "sour"}]}]
        assert payload["systemInstruction"] == {"parts": [{"text": "be brief"}]}
        assert payload["generationConfig"] == {"responseMimeType": "application/json"}

    def test_assistant_role_becomes_model(self):
        session = FakeSession(gemini_ok("ok"))
        GeminiAssistant("k", session=session).converse([
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "namaste"},
            {"role": "user", "content": "prices?"},
        ])
        roles = [c["role"] for c in session.calls[0][1]["json"]["contents"]]
        assert roles == ["user", "model", "user"]

    def test_quota_error(self):
        body = {"error": {"message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}
        assistant = GeminiAssistant("k", session=FakeSession(FakeResponse(429, body)))
        with pytest.raises(QuotaError, match="Resource has been exhausted"):
            assistant.get_suggestion("x")

    def test_bad_key_is_configuration_error(self):
        assistant = GeminiAssistant("k", session=FakeSession(FakeResponse(403, {"error": {"message": "denied"}})))
        with pytest.raises(ConfigurationError):
            assistant.get_suggestion("x")

    def test_server_error_without_json_body(self):
        assistant = GeminiAssistant("k", session=FakeSession(FakeResponse(500, raw="<html>")))
        with pytest.raises(NetworkError, match="Something went wrong"):
            assistant.get_suggestion("x")

    def test_connection_error(self):
        assistant = GeminiAssistant("k", session=FakeSession(error=requests.ConnectionError("offline")))
        with pytest.raises(NetworkError):
            assistant.get_suggestion("x")

    def test_missing_candidates(self):
        assistant = GeminiAssistant("k", session=FakeSession(FakeResponse(200, {"candidates": []})))
        with pytest.raises(InvalidResponseError):
            assistant.get_suggestion("x")

    def test_transcribe_not_supported(self):
        with pytest.raises(ConfigurationError):
            GeminiAssistant("k", session=FakeSession()).transcribe(b"...")


class TestBuildAssistant:

    def test_openai_without_key(self):
        with pytest.raises(ConfigurationError):
            build_assistant(Settings())

    def test_gemini_without_key(self):
        with pytest.raises(ConfigurationError):
            build_assistant(Settings(ai_provider="gemini"))

    def test_picks_provider(self):
        assert isinstance(build_assistant(Settings(openai_api_key="sk-test")), OpenAIAssistant)
        assert isinstance(build_assistant(Settings(ai_provider="gemini", gemini_api_key="g")), GeminiAssistant)


# =============================================================================
# FEATURES
# =============================================================================

class TestSousChef:

    def test_empty_input(self):
        with pytest.raises(ValueError, match="describe your ingredients"):
            sous_chef_advice(StubAssistant(), "   ")

    def test_prompt_contains_vendor_input(self):
        stub = StubAssistant("Add a little sugar.")
        assert sous_chef_advice(stub, "Aaj ke tamatar thode khatte hain") == "Add a little sugar."
        assert 'Vendor\'s input: "Aaj ke tamatar thode khatte hain"' in stub.prompts[0][0]


class TestZeroWaste:

    def test_parses_recipe(self):
        stub = StubAssistant(json.dumps({"recipeName": "Lemon Rice Bites", "instructions": "Mix and fry."}))
        recipe = zero_waste_recipe(stub, "rice, lemon")
        assert recipe == {"recipe_name": "Lemon Rice Bites", "instructions": "Mix and fry."}
        prompt, system, json_mode = stub.prompts[0]
        assert prompt == "Here are my leftovers: rice, lemon"
        assert "recipeName" in system
        assert json_mode is True

    def test_code_fenced_json(self):
        stub = StubAssistant('```json\n{"recipeName": "Aloo Tikki", "instructions": "Shape and fry."}\n```')
        assert zero_waste_recipe(stub, "potatoes")["recipe_name"] == "Aloo Tikki"

    @pytest.mark.parametrize("answer", ["not json", '{"recipeName": "X"}', '{"recipeName": "", "instructions": "y"}'])
    def test_invalid_recipe(self, answer):
        with pytest.raises(InvalidResponseError):
            zero_waste_recipe(StubAssistant(answer), "rice")

    def test_empty_input(self):
        with pytest.raises(ValueError):
            zero_waste_recipe(StubAssistant(), "")


class TestDailyStrategy:

    ROW = {"tiffin_item": "Idli", "ingredient_price": "5000", "daily_sales": "120", "per_plate_profit": "15"}

    def test_requires_rows(self):
        with pytest.raises(ValueError, match="at least one tiffin item"):
            daily_strategy(StubAssistant(), [])

    @pytest.mark.parametrize("override", [
        {"tiffin_item": ""},
        {"tiffin_item": "Select an item"},
        {"daily_sales": ""},
        {"per_plate_profit": " "},
    ])
    def test_incomplete_rows(self, override):
        with pytest.raises(ValueError, match="fill in all input fields"):
            daily_strategy(StubAssistant(), [{**self.ROW, **override}])

    def test_prompt_lists_each_item(self):
        stub = StubAssistant("- Promote Dosa")
        rows = [self.ROW, {**self.ROW, "tiffin_item": "Dosa"}]
        assert daily_strategy(stub, rows) == "- Promote Dosa"
        prompt = stub.prompts[0][0]
        assert prompt == strategy_prompt(rows)
        assert "- Tiffin Item: Idli\n  - Daily Ingredient Price: 5000 INR" in prompt
        assert "- Tiffin Item: Dosa" in prompt


class TestChatReply:

    def test_drops_greeting_and_adds_context(self):
        stub = StubAssistant("Promote Masala Dosa.")
        history = [
            {"role": "assistant", "content": CHAT_GREETING},
            {"role": "user", "content": "What should I sell more of?"},
        ]
        assert chat_reply(stub, history, "- Masala Dosa: margin 60%") == "Promote Masala Dosa."
        messages, system = stub.conversations[0]
        assert messages == [{"role": "user", "content": "What should I sell more of?"}]
        assert "Chaat-GPT" in system
        assert "- Masala Dosa: margin 60%" in system

    def test_needs_a_user_turn(self):
        with pytest.raises(ValueError):
            chat_reply(StubAssistant(), [{"role": "assistant", "content": CHAT_GREETING}])
