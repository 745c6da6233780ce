import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from criseo.core.assistant import AssistantError, CrisisAssistant
from criseo.main import app, get_assistant
from criseo.models.schemas import InventoryLine, Location

RECOMMENDATION = {
    "recommendations": [
        {
            "type": "medical",
            "reason": "Reported injury needs treatment",
            "priority": "high",
            "contactInfo": {"phone": "112"},
        }
    ],
    "urgencyLevel": "emergency",
    "nextSteps": ["Go to the nearest clinic"],
}

RATION_PLAN = {
    "totalDays": 2,
    "peopleCount": 10,
    "dailyCaloriesPerPerson": 2100,
    "rationBreakdown": [
        {
            "day": 1,
            "meals": [
                {
                    "meal": "breakfast",
                    "items": [{"item": "Rice", "quantityPerPerson": 0.1, "unit": "kg", "totalQuantity": 1}],
                }
            ],
        }
    ],
    "recommendations": ["Use the milk first"],
    "shortages": [{"item": "Protein", "needed": 5, "available": 2, "unit": "kg"}],
}


def ollama_reply(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = {"response": payload if isinstance(payload, str) else json.dumps(payload)}
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


@pytest.fixture
def assistant():
    return CrisisAssistant(host="http://ollama.test:11434/", model="test-model", timeout=5)


def test_recommend_sends_structured_request(assistant):
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply(RECOMMENDATION)) as post:
        result = assistant.recommend(
            "my brother is hurt",
            location=Location(latitude=1.5, longitude=2.5),
            preferences={"wheelchair": True},
            language="es",
        )

    assert result.urgency_level == "emergency"
    assert result.recommendations[0].contact_info.phone == "112"

    url = post.call_args.args[0]
    body = post.call_args.kwargs["json"]
    assert url == "http://ollama.test:11434/api/generate"
    assert post.call_args.kwargs["timeout"] == 5
    assert body["model"] == "test-model"
    assert body["stream"] is False
    assert "urgencyLevel" in body["format"]["properties"]
    assert "my brother is hurt" in body["prompt"]
    assert "User location: 1.5, 2.5" in body["prompt"]
    assert "Respond in es" in body["prompt"]
    assert "wheelchair" in body["prompt"]


def test_english_recommendation_has_no_language_instruction(assistant):
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply(RECOMMENDATION)) as post:
        assistant.recommend("need food")
    assert "Respond in" not in post.call_args.kwargs["json"]["prompt"]


def test_translate_strips_markdown_fences(assistant):
    raw = "```json\n" + json.dumps({"detectedLanguage": "fr", "translatedText": "help", "confidence": 0.9}) + "\n```"
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply(raw)):
        result = assistant.translate("aidez-moi")
    assert result.detected_language == "fr"
    assert result.translated_text == "help"


def test_recipes_default_to_empty_list(assistant):
    inventory = [InventoryLine(item_name="Rice", quantity=5, unit="kg")]
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply({})) as post:
        assert assistant.generate_recipes(inventory, 4) == []
    assert "Rice: 5 kg" in post.call_args.kwargs["json"]["prompt"]


def test_rations_include_expiry(assistant):
    inventory = [InventoryLine(item_name="Milk", quantity=2, unit="liters", expiry_date="2024-06-02")]
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply(RATION_PLAN)) as post:
        plan = assistant.calculate_rations(inventory, 10, days=2)
    assert plan.total_days == 2
    assert plan.shortages[0].needed == 5
    assert "Milk: 2 liters (expires: 2024-06-02)" in post.call_args.kwargs["json"]["prompt"]


def raw_body(body=None, error=None):
    resp = MagicMock()
    resp.status_code = 200
    if error is not None:
        resp.json.side_effect = error
    else:
        resp.json.return_value = body
    return resp


@pytest.mark.parametrize("resp", [
    ollama_reply(""),
    ollama_reply("not json at all"),
    ollama_reply({"unexpected": True}),
    raw_body(error=requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)),
    raw_body(body=["not", "an", "object"]),
])
def test_unusable_replies_raise(assistant, resp):
    with patch("criseo.core.assistant.requests.post", return_value=resp):
        with pytest.raises(AssistantError):
            assistant.translate("hola")


@pytest.mark.parametrize("error", [
    requests.exceptions.InvalidURL("bad host"),
    requests.exceptions.TooManyRedirects("loop"),
    requests.exceptions.ChunkedEncodingError("cut off"),
])
def test_other_transport_failures_raise(assistant, error):
    with patch("criseo.core.assistant.requests.post", side_effect=error):
        with pytest.raises(AssistantError, match="Ollama request failed"):
            assistant.translate("hola")


def test_connection_failure_raises(assistant):
    with patch("criseo.core.assistant.requests.post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(AssistantError, match="Cannot connect"):
            assistant.translate("hola")


def test_missing_model_raises(assistant):
    with patch("criseo.core.assistant.requests.post", return_value=ollama_reply("", status_code=404)):
        with pytest.raises(AssistantError, match="ollama pull test-model"):
            assistant.translate("hola")


# === ROUTES ===

class FakeAssistant:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def _answer(self, name, value, *args):
        self.calls.append((name, args))
        if self.fail:
            raise AssistantError("model offline")
        return value

    def recommend(self, query, location=None, preferences=None, language=None):
        return self._answer("recommend", RECOMMENDATION, query, location, preferences, language)

    def translate(self, text, target_language="en"):
        return self._answer(
            "translate",
            {"detectedLanguage": "es", "translatedText": "hello", "confidence": 0.8},
            text, target_language,
        )

    def generate_recipes(self, inventory, people_count):
        return self._answer("recipes", [], inventory, people_count)

    def calculate_rations(self, inventory, people_count, days=1):
        return self._answer("rations", RATION_PLAN, inventory, people_count, days)


@pytest.fixture
def fake_assistant(client):
    fake = FakeAssistant()
    app.dependency_overrides[get_assistant] = lambda: fake
    return fake


def test_ai_routes_require_fields(client, fake_assistant):
    r = client.post("/api/ai/recommend", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Query is required"}

    r = client.post("/api/ai/translate", json={"targetLanguage": "fr"})
    assert r.status_code == 400
    assert r.json() == {"error": "Text is required"}

    r = client.post("/api/ai/recipes", json={"inventory": []})
    assert r.status_code == 400

    r = client.post("/api/ai/rations", json={"peopleCount": 3})
    assert r.status_code == 400
    assert fake_assistant.calls == []


def test_ai_routes_return_model_output(client, fake_assistant):
    r = client.post("/api/ai/recommend", json={
        "query": "shelter tonight",
        "location": {"latitude": 1, "longitude": 2},
        "userLanguage": "ar",
    })
    assert r.status_code == 200
    assert r.json()["urgencyLevel"] == "emergency"

    r = client.post("/api/ai/translate", json={"text": "hola"})
    assert r.json()["translatedText"] == "hello"
    assert fake_assistant.calls[-1] == ("translate", ("hola", "en"))

    inventory = [{"itemName": "Rice", "quantity": 10, "unit": "kg", "category": "food"}]
    r = client.post("/api/ai/recipes", json={"inventory": inventory, "peopleCount": 4})
    assert r.status_code == 200
    assert r.json() == []

    r = client.post("/api/ai/rations", json={"inventory": inventory, "peopleCount": 10, "days": 2})
    assert r.status_code == 200
    assert r.json()["dailyCaloriesPerPerson"] == 2100
    assert fake_assistant.calls[-1][1][2] == 2


def test_ai_failures_map_to_500(client, fake_assistant):
    fake_assistant.fail = True
    r = client.post("/api/ai/recommend", json={"query": "help"})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to get AI recommendation"}

    r = client.post("/api/ai/translate", json={"text": "hola"})
    assert r.json() == {"error": "Failed to process language request"}
