"""Crisis assistant backed by a local Ollama runtime.

Each feature builds a prompt, asks ``/api/generate`` for JSON matching a
pydantic schema, and validates the reply against that schema.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar
import json
import logging

import requests
from pydantic import BaseModel, ValidationError

from .config import settings
from ..models.schemas import (
    InventoryLine,
    Location,
    RationPlan,
    Recipe,
    RecipeBook,
    ResourceRecommendation,
    Translation,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

TRANSLATOR_SYSTEM = (
    "You are a professional translator and language detection specialist with "
    "expertise in crisis communication and humanitarian contexts."
)
ASSISTANT_SYSTEM = (
    "You are a knowledgeable crisis aid assistant with access to humanitarian "
    "resource databases. Always prioritize safety and provide accurate, helpful "
    "information for people in crisis situations."
)
NUTRITION_SYSTEM = (
    "You are a nutritionist and crisis response expert specializing in food "
    "preparation during humanitarian emergencies."
)
RATIONS_SYSTEM = (
    "You are a humanitarian aid specialist with expertise in food distribution, "
    "nutrition planning, and crisis management."
)

TRANSLATE_PROMPT = """You are a multilingual language expert. Analyze the following text and:
1. Detect the source language
2. Translate it to {target_language} if it's not already in that language
3. Provide a confidence score (0-1)

Text: "{text}"

Respond with JSON containing detectedLanguage (a language code such as 'en', 'es', 'ar'),
translatedText and confidence."""

RECOMMEND_PROMPT = """You are a crisis aid assistant helping people find humanitarian resources. {language_instruction}

User query: "{query}"
{context}
Based on this query, recommend crisis resources such as safehouses, food warehouses,
medical facilities, or humanitarian organizations. Consider the urgency and give
actionable next steps.

Respond with JSON containing recommendations (each with type
safehouse|warehouse|medical|organization, reason, priority high|medium|low and
optional contactInfo), urgencyLevel (emergency|urgent|normal) and nextSteps."""

RECIPES_PROMPT = """You are a nutrition expert helping design meals for people in crisis situations.

Available inventory: {inventory}
Number of people: {people_count}

Create 3-5 nutritious, practical recipes using only the available ingredients. Focus on:
1. Maximum nutrition with available ingredients
2. Simple preparation methods suitable for crisis conditions
3. Efficient use of resources
4. Cultural sensitivity and dietary considerations

Respond with JSON containing a recipes list."""

RATIONS_PROMPT = """You are a humanitarian logistics expert calculating food rations for crisis situations.

Available inventory: {inventory}
Number of people: {people_count}
Number of days: {days}

Calculate ration distribution considering:
1. Minimum 2000 calories per person per day
2. Balanced nutrition (protein, carbs, vitamins)
3. Food safety and expiration dates
4. Equitable distribution
5. Storage and preparation constraints

Respond with JSON with totalDays={days}, peopleCount={people_count},
dailyCaloriesPerPerson, rationBreakdown per day and meal, recommendations and shortages."""


class AssistantError(RuntimeError):
    """The language model could not be reached or gave an unusable answer."""


def _strip_fences(raw_text: str) -> str:
    json_text = raw_text.strip()
    if json_text.startswith("```"):
        json_text = "\n".join(json_text.split("\n")[1:])
    if json_text.endswith("```"):
        json_text = json_text[: json_text.rfind("```")]
    return json_text.strip()


def _format_inventory(inventory: List[InventoryLine], with_expiry: bool = False) -> str:
    lines = []
    for item in inventory:
        line = f"{item.item_name}: {item.quantity:g} {item.unit}"
        if with_expiry:
            line += f" (expires: {item.expiry_date or 'N/A'})"
        lines.append(line)
    return ", ".join(lines)


class CrisisAssistant:
    def __init__(self, host: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None):
        self.host = (host or settings.OLLAMA_HOST).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = timeout if timeout is not None else settings.OLLAMA_TIMEOUT

    def _generate(self, prompt: str, system: str, schema: Type[M]) -> M:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "system": system,
            "format": schema.model_json_schema(by_alias=True),
            "stream": False,
        }
        url = f"{self.host}/api/generate"

        try:
            resp = requests.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.ConnectionError as exc:
            raise AssistantError(
                f"Cannot connect to Ollama at {self.host}. Make sure it is running."
            ) from exc
        except requests.Timeout as exc:
            raise AssistantError(f"Ollama did not answer within {self.timeout}s") from exc
        except requests.HTTPError as exc:
            if resp.status_code == 404:
                raise AssistantError(
                    f"Model '{self.model}' not found in Ollama. Pull it first: ollama pull {self.model}"
                ) from exc
            raise AssistantError(f"Ollama request failed: {exc}") from exc
        except requests.RequestException as exc:
            raise AssistantError(f"Ollama request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise AssistantError("Ollama returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise AssistantError("Ollama returned an unexpected body")

        raw_text = (body.get("response") or "").strip()
        if not raw_text:
            raise AssistantError("Empty response from model")

        try:
            data = json.loads(_strip_fences(raw_text))
        except json.JSONDecodeError as exc:
            logger.warning("Model returned non-JSON: %s", raw_text[:200])
            raise AssistantError("Model returned non-JSON output") from exc

        try:
            result = schema.model_validate(data)
        except ValidationError as exc:
            logger.warning("Model output does not match %s: %s", schema.__name__, exc)
            raise AssistantError(f"Model output does not match {schema.__name__}") from exc

        logger.info("Ollama (%s) answered %s, %d chars", self.model, schema.__name__, len(raw_text))
        return result

    def translate(self, text: str, target_language: str = "en") -> Translation:
        prompt = TRANSLATE_PROMPT.format(text=text, target_language=target_language)
        return self._generate(prompt, TRANSLATOR_SYSTEM, Translation)

    def recommend(
        self,
        query: str,
        location: Optional[Location] = None,
        preferences: Optional[Dict[str, Any]] = None,
        language: Optional[str] = None,
    ) -> ResourceRecommendation:
        context = []
        system = ASSISTANT_SYSTEM
        language_instruction = ""
        if language:
            context.append(f"User language: {language}")
            if language != "en":
                language_instruction = (
                    f"Respond in {language} language when appropriate, especially for user-facing text."
                )
            system += " Adapt your communication style to the user's language and cultural context."
        if location is not None:
            context.append(f"User location: {location.latitude}, {location.longitude}")
        if preferences:
            context.append(f"User preferences: {json.dumps(preferences)}")

        prompt = RECOMMEND_PROMPT.format(
            language_instruction=language_instruction,
            query=query,
            context="\n".join(context),
        )
        return self._generate(prompt, system, ResourceRecommendation)

    def generate_recipes(self, inventory: List[InventoryLine], people_count: int) -> List[Recipe]:
        prompt = RECIPES_PROMPT.format(
            inventory=_format_inventory(inventory),
            people_count=people_count,
        )
        return self._generate(prompt, NUTRITION_SYSTEM, RecipeBook).recipes

    def calculate_rations(self, inventory: List[InventoryLine], people_count: int, days: int = 1) -> RationPlan:
        prompt = RATIONS_PROMPT.format(
            inventory=_format_inventory(inventory, with_expiry=True),
            people_count=people_count,
            days=days,
        )
        return self._generate(prompt, RATIONS_SYSTEM, RationPlan)


assistant = CrisisAssistant()
