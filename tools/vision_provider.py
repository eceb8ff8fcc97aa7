"""Generative AI provider for garment analysis, recommendations and try-on text."""

from __future__ import annotations

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

import requests
from google import generativeai as genai
from pydantic import BaseModel, ValidationError

from logic.errors import UpstreamError
from tools.observability import instrument_operation

LOGGER = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_NUMBERED_LINE = re.compile(r"^\d+\.\s*")

ANALYZE_PROMPT = """Analyze this clothing item and provide:
1. Category (e.g., shirt, dress, pants, jacket)
2. Main colors (list top 3)
3. Pattern (solid, striped, floral, etc.)
4. Style (casual, formal, athletic, etc.)
5. Brief styling suggestions

Respond in JSON format:
{
  "category": "...",
  "colors": ["...", "...", "..."],
  "pattern": "...",
  "style": "...",
  "suggestions": "..."
}"""


@dataclass
class ImageAnalysis:
    category: str = "unknown"
    colors: List[str] = field(default_factory=list)
    pattern: str = "unknown"
    style: str = "unknown"
    suggestions: str = ""


class _AnalysisPayload(BaseModel):
    category: str = "unknown"
    colors: List[str] = []
    pattern: str = "unknown"
    style: str = "unknown"
    suggestions: str = ""


def parse_analysis(text: str) -> ImageAnalysis:
    """Read the first JSON object in ``text``; fall back to raw text as suggestions."""

    match = _JSON_BLOCK.search(text or "")
    if match:
        try:
            payload = _AnalysisPayload.model_validate(json.loads(match.group(0)))
            return ImageAnalysis(**payload.model_dump())
        except (ValueError, ValidationError):
            LOGGER.warning("Unparseable analysis payload, returning raw text")
    return ImageAnalysis(suggestions=text or "")


def parse_recommendations(text: str) -> List[str]:
    """Keep numbered lines only, without their numbering."""

    lines = []
    for line in (text or "").splitlines():
        stripped = line.strip()
        if _NUMBERED_LINE.match(stripped):
            lines.append(_NUMBERED_LINE.sub("", stripped).strip())
    return lines


def recommendations_prompt(profile: Dict[str, Any], wardrobe: Sequence[Dict[str, Any]]) -> str:
    styles = ", ".join(profile.get("preferred_styles") or []) or "versatile"
    colors = ", ".join(profile.get("favorite_colors") or []) or "neutral tones"
    inventory = "\n".join(
        f"- {item.get('category')} ({', '.join(item.get('colors') or []) or 'color unspecified'}, "
        f"{item.get('pattern') or 'solid'})"
        for item in wardrobe
    )
    return (
        "You are a personal fashion stylist. Based on the following wardrobe, suggest 5 new items "
        "that would complete great outfits:\n\n"
        "User Preferences:\n"
        f"- Styles: {styles}\n"
        f"- Size: {profile.get('size') or 'not specified'}\n"
        f"- Favorite Colors: {colors}\n\n"
        f"Current Wardrobe ({len(wardrobe)} items):\n{inventory}\n\n"
        "Provide 5 specific item recommendations as a numbered list that fill gaps in the wardrobe, "
        "create versatile outfit combinations, match the style preferences and work with what they "
        "already own.\n"
        'Format each recommendation as: "Category: Description (why it works)"'
    )


def try_on_prompt(details: Dict[str, Any]) -> str:
    colors = ", ".join(details.get("colors") or []) or "not specified"
    return (
        "You are a fashion styling AI assistant. Describe how the following clothing item would "
        "look on a person:\n\n"
        f"Clothing Item: {details.get('title')}\n"
        f"Category: {details.get('category')}\n"
        f"Color: {colors}\n"
        f"Pattern: {details.get('pattern') or 'solid'}\n\n"
        "Provide a detailed, helpful description of:\n"
        "1. How this item would fit and flatter different body types\n"
        "2. Styling suggestions (what to pair it with)\n"
        "3. Occasions where this would be appropriate\n"
        "4. Color combinations that work well\n\n"
        "Keep the tone friendly and encouraging. Be specific and practical."
    )


class VisionProvider(ABC):
    """AI styling features billed against the caller's own API key."""

    @abstractmethod
    def analyze_image(self, image_url: str, api_key: str) -> ImageAnalysis:
        """Classify a garment photo."""

    @abstractmethod
    def recommend_items(
        self, profile: Dict[str, Any], wardrobe: Sequence[Dict[str, Any]], api_key: str
    ) -> List[str]:
        """Suggest items that complement the wardrobe."""

    @abstractmethod
    def describe_try_on(
        self, user_photo_url: str, item_photo_url: str, details: Dict[str, Any], api_key: str
    ) -> str:
        """Describe how a garment would look when worn."""


class GeminiVisionProvider(VisionProvider):
    """Gemini backed provider.

    ``genai.configure`` is process global and the model resolves its client
    from that global state when the request is sent, so configuring a
    caller's key and generating content happen under one lock. This
    serialises Gemini calls across all users of a worker process; scale
    throughput with more uvicorn workers rather than threads.
    """

    _lock = threading.Lock()

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        timeout_seconds: float = 10.0,
        model_factory: Callable[[str], Any] | None = None,
        image_fetcher: Callable[[str], bytes] | None = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.model_factory = model_factory or genai.GenerativeModel
        self.image_fetcher = image_fetcher or self._fetch_image

    def _fetch_image(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamError("Could not fetch image") from exc
        if not 200 <= response.status_code < 300:
            raise UpstreamError("Could not fetch image")
        return response.content

    def _generate(self, api_key: str, contents: Any) -> str:
        with self._lock:
            genai.configure(api_key=api_key)
            try:
                result = self.model_factory(self.model).generate_content(contents)
                return result.text
            except Exception as exc:
                LOGGER.error("Gemini call failed", extra={"error_type": type(exc).__name__})
                raise UpstreamError("AI provider failed") from exc

    @instrument_operation("gemini.analyze_image")
    def analyze_image(self, image_url: str, api_key: str) -> ImageAnalysis:
        image_bytes = self.image_fetcher(image_url)
        text = self._generate(
            api_key,
            [{"mime_type": "image/jpeg", "data": image_bytes}, ANALYZE_PROMPT],
        )
        return parse_analysis(text)

    @instrument_operation("gemini.recommend_items")
    def recommend_items(
        self, profile: Dict[str, Any], wardrobe: Sequence[Dict[str, Any]], api_key: str
    ) -> List[str]:
        return parse_recommendations(self._generate(api_key, recommendations_prompt(profile, wardrobe)))

    @instrument_operation("gemini.describe_try_on")
    def describe_try_on(
        self, user_photo_url: str, item_photo_url: str, details: Dict[str, Any], api_key: str
    ) -> str:
        return self._generate(api_key, try_on_prompt(details))


class MockVisionProvider(VisionProvider):
    """Deterministic provider for tests and offline development."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise UpstreamError("AI provider failed")

    def analyze_image(self, image_url: str, api_key: str) -> ImageAnalysis:
        self._record("analyze_image")
        return ImageAnalysis(
            category="shirt",
            colors=["navy", "white"],
            pattern="striped",
            style="casual",
            suggestions="Pair with light denim.",
        )

    def recommend_items(
        self, profile: Dict[str, Any], wardrobe: Sequence[Dict[str, Any]], api_key: str
    ) -> List[str]:
        self._record("recommend_items")
        return [
            "Outerwear: Camel trench coat (layers over everything)",
            "Shoes: White leather sneakers (casual staple)",
        ]

    def describe_try_on(
        self, user_photo_url: str, item_photo_url: str, details: Dict[str, Any], api_key: str
    ) -> str:
        self._record("describe_try_on")
        return f"The {details.get('title')} sits comfortably and pairs well with neutral basics."


__all__ = [
    "ImageAnalysis",
    "VisionProvider",
    "GeminiVisionProvider",
    "MockVisionProvider",
    "parse_analysis",
    "parse_recommendations",
    "recommendations_prompt",
    "try_on_prompt",
]
