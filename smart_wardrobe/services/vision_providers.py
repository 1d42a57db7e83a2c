"""
Vision Providers - third-party image classifiers behind one interface

Each provider sends the garment photo to its API, then maps the proprietary
response onto ClothingAttributes. Failures are reported as ProviderError with
a kind the gateway uses to decide between retrying and moving down the chain.
"""

from typing import Optional, List, Dict, Any, Tuple
import asyncio
import base64
import json
import logging
import re

import requests
from openai import OpenAI, APITimeoutError, APIConnectionError, APIStatusError

from smart_wardrobe.models.garment import (
    ClothingAttributes,
    GarmentCategory,
    Season,
    Style,
    UNKNOWN_COLOR,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================

class ProviderError(Exception):
    """A provider call failed; never surfaced past the fallback boundary."""

    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    CONNECTION = "connection"
    UNPARSEABLE = "unparseable"

    RETRYABLE = {TIMEOUT, SERVER_ERROR}

    def __init__(self, provider: str, kind: str, message: str = ""):
        self.provider = provider
        self.kind = kind
        super().__init__(f"{provider}: {kind}{' - ' + message if message else ''}")

    @property
    def retryable(self) -> bool:
        return self.kind in self.RETRYABLE


# ============================================================================
# NORMALIZATION
# ============================================================================

CATEGORY_KEYWORDS: Tuple[Tuple[str, GarmentCategory], ...] = (
    ("underwear", GarmentCategory.UNDERWEAR),
    ("lingerie", GarmentCategory.UNDERWEAR),
    ("sportswear", GarmentCategory.SPORTSWEAR),
    ("activewear", GarmentCategory.SPORTSWEAR),
    ("formalwear", GarmentCategory.FORMALWEAR),
    ("suit", GarmentCategory.FORMALWEAR),
    ("outerwear", GarmentCategory.OUTERWEAR),
    ("jacket", GarmentCategory.OUTERWEAR),
    ("coat", GarmentCategory.OUTERWEAR),
    ("blazer", GarmentCategory.OUTERWEAR),
    ("shoe", GarmentCategory.SHOES),
    ("sneaker", GarmentCategory.SHOES),
    ("boot", GarmentCategory.SHOES),
    ("sandal", GarmentCategory.SHOES),
    ("footwear", GarmentCategory.SHOES),
    ("heel", GarmentCategory.SHOES),
    ("bottom", GarmentCategory.BOTTOM),
    ("pants", GarmentCategory.BOTTOM),
    ("trouser", GarmentCategory.BOTTOM),
    ("jeans", GarmentCategory.BOTTOM),
    ("skirt", GarmentCategory.BOTTOM),
    ("shorts", GarmentCategory.BOTTOM),
    ("accessor", GarmentCategory.ACCESSORY),
    ("bag", GarmentCategory.ACCESSORY),
    ("hat", GarmentCategory.ACCESSORY),
    ("belt", GarmentCategory.ACCESSORY),
    ("scarf", GarmentCategory.ACCESSORY),
    ("jewel", GarmentCategory.ACCESSORY),
    ("top", GarmentCategory.TOP),
    ("shirt", GarmentCategory.TOP),
    ("blouse", GarmentCategory.TOP),
    ("sweater", GarmentCategory.TOP),
    ("dress", GarmentCategory.TOP),
)

STYLE_KEYWORDS: Tuple[Tuple[str, Style], ...] = (
    ("casual", Style.CASUAL),
    ("formal", Style.FORMAL),
    ("business", Style.FORMAL),
    ("sport", Style.SPORT),
    ("athletic", Style.SPORT),
    ("fashion", Style.FASHION),
    ("trend", Style.FASHION),
    ("vintage", Style.VINTAGE),
    ("retro", Style.VINTAGE),
    ("minimal", Style.MINIMAL),
    ("street", Style.STREET),
)

SEASON_ALIASES: Dict[str, List[Season]] = {
    "spring": [Season.SPRING],
    "summer": [Season.SUMMER],
    "autumn": [Season.AUTUMN],
    "fall": [Season.AUTUMN],
    "winter": [Season.WINTER],
    "all": list(Season),
    "all-season": list(Season),
    "all seasons": list(Season),
}

DEFAULT_SEASONS = [Season.SPRING, Season.AUTUMN]

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _keyword_match(value: Any, table, default):
    text = str(value or "").strip().lower()
    if not text:
        return default
    for enum_value in {member for _, member in table}:
        if text == enum_value.value:
            return enum_value
    for keyword, enum_value in table:
        if keyword in text:
            return enum_value
    return default


def normalize_category(value: Any) -> GarmentCategory:
    return _keyword_match(value, CATEGORY_KEYWORDS, GarmentCategory.TOP)


def normalize_style(value: Any) -> Style:
    return _keyword_match(value, STYLE_KEYWORDS, Style.CASUAL)


def normalize_seasons(value: Any) -> List[Season]:
    if isinstance(value, str):
        value = [value]
    seasons: List[Season] = []
    for raw in value or []:
        for season in SEASON_ALIASES.get(str(raw).strip().lower(), []):
            if season not in seasons:
                seasons.append(season)
    return seasons or list(DEFAULT_SEASONS)


def normalize_colors(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    colors: List[str] = []
    for raw in value or []:
        color = str(raw).strip().lower()
        if color and color not in colors:
            colors.append(color)
    return colors or [UNKNOWN_COLOR]


def normalize_confidence(value: Any, default: float = 0.5) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence:  # NaN
        return default
    if confidence > 1.0 and confidence <= 100.0:
        confidence = confidence / 100.0
    return max(0.0, min(1.0, confidence))


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value or [] if v]


def normalize_attributes(raw: Dict[str, Any], provider: str) -> ClothingAttributes:
    """Map a provider's loosely-typed JSON onto the closed vocabularies."""
    sub_category = str(raw.get("subCategory") or raw.get("sub_category") or "").strip()
    return ClothingAttributes(
        category=normalize_category(raw.get("category")),
        sub_category=sub_category or "general",
        colors=normalize_colors(raw.get("colors")),
        style=normalize_style(raw.get("style")),
        seasons=normalize_seasons(raw.get("season") or raw.get("seasons")),
        confidence=normalize_confidence(raw.get("confidence")),
        detected_features=_string_list(raw.get("features") or raw.get("detected_features")),
        suggested_tags=_string_list(raw.get("tags") or raw.get("suggested_tags")),
        provider=provider,
    )


def extract_json_object(text: str, provider: str) -> Dict[str, Any]:
    """Pull the first {...} block out of free-form model output."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ProviderError(provider, ProviderError.UNPARSEABLE, "no JSON object in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderError(provider, ProviderError.UNPARSEABLE, str(e))
    if not isinstance(parsed, dict):
        raise ProviderError(provider, ProviderError.UNPARSEABLE, "JSON is not an object")
    return parsed


ANALYSIS_PROMPT = """Analyze the clothing item in this photo and answer with a single JSON object:
{
  "category": "one of top/bottom/outerwear/shoes/accessory/underwear/sportswear/formalwear",
  "subCategory": "specific type, e.g. t-shirt, shirt, jeans, sneakers",
  "colors": ["main color 1", "main color 2", "main color 3"],
  "style": "one of casual/formal/sport/fashion/vintage/minimal/street",
  "season": ["suitable seasons: spring/summer/autumn/winter"],
  "features": ["material, design details, fit"],
  "tags": ["short practical tags"],
  "confidence": 0.9
}
Use simple English color names. Answer with JSON only."""


# ============================================================================
# BASE PROVIDER
# ============================================================================

class VisionProvider:
    """Common capability: analyze(image bytes) -> ClothingAttributes or ProviderError."""

    name = "base"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 15.0,
        retry_backoff: float = 1.0,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.retry_backoff = retry_backoff

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def analyze(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> ClothingAttributes:
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        raw = await self._call_with_retry(image_b64, mime_type)
        return self.parse(raw)

    async def _call_with_retry(self, image_b64: str, mime_type: str) -> Any:
        # One extra attempt, only for timeouts and 5xx responses
        try:
            return await asyncio.to_thread(self.request, image_b64, mime_type)
        except ProviderError as e:
            if not e.retryable:
                raise
            logger.warning(f"🔁 {self.name} {e.kind}, retrying in {self.retry_backoff}s")
            await asyncio.sleep(self.retry_backoff)
            return await asyncio.to_thread(self.request, image_b64, mime_type)

    def request(self, image_b64: str, mime_type: str) -> Any:
        """Blocking network call; runs in a worker thread."""
        raise NotImplementedError

    def parse(self, raw: Any) -> ClothingAttributes:
        return normalize_attributes(extract_json_object(raw, self.name), self.name)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _post_json(self, url: str, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None,
                   params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            response = requests.post(
                url,
                json=body,
                headers={"Content-Type": "application/json", **(headers or {})},
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise ProviderError(self.name, ProviderError.TIMEOUT, str(e))
        except requests.RequestException as e:
            raise ProviderError(self.name, ProviderError.CONNECTION, str(e))

        if response.status_code >= 500:
            raise ProviderError(self.name, ProviderError.SERVER_ERROR, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ProviderError(self.name, ProviderError.CLIENT_ERROR, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, str(e))


# ============================================================================
# CONCRETE PROVIDERS
# ============================================================================

class GeminiVisionProvider(VisionProvider):
    name = "gemini"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: Optional[str], model: str = "gemini-1.5-flash", **kwargs):
        super().__init__(api_key, **kwargs)
        self.model = model

    def request(self, image_b64: str, mime_type: str) -> str:
        data = self._post_json(
            f"{self.BASE_URL}/{self.model}:generateContent",
            {
                "contents": [{
                    "parts": [
                        {"text": ANALYSIS_PROMPT},
                        {"inline_data": {"mime_type": mime_type, "data": image_b64}},
                    ]
                }]
            },
            params={"key": self.api_key},
        )
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, "unexpected response shape")


class OpenAIVisionProvider(VisionProvider):
    name = "openai"

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini",
                 base_url: Optional[str] = None, **kwargs):
        super().__init__(api_key, **kwargs)
        self.model = model
        self.base_url = base_url
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            # Retries are handled by the gateway, not the SDK
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def request(self, image_b64: str, mime_type: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANALYSIS_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{image_b64}"},
                        },
                    ],
                }],
                max_tokens=1000,
                temperature=0.1,
            )
        except APITimeoutError as e:
            raise ProviderError(self.name, ProviderError.TIMEOUT, str(e))
        except APIConnectionError as e:
            raise ProviderError(self.name, ProviderError.CONNECTION, str(e))
        except APIStatusError as e:
            kind = ProviderError.SERVER_ERROR if e.status_code >= 500 else ProviderError.CLIENT_ERROR
            raise ProviderError(self.name, kind, f"HTTP {e.status_code}")

        if not response.choices:
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, "empty choices")
        return response.choices[0].message.content or ""


class KimiVisionProvider(OpenAIVisionProvider):
    """Moonshot Kimi exposes an OpenAI-compatible chat endpoint."""

    name = "kimi"

    def __init__(self, api_key: Optional[str], model: str = "moonshot-v1-8k-vision-preview",
                 base_url: str = "https://api.moonshot.cn/v1", **kwargs):
        super().__init__(api_key, model=model, base_url=base_url, **kwargs)


class AnthropicVisionProvider(VisionProvider):
    name = "anthropic"
    URL = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: Optional[str], model: str = "claude-3-5-sonnet-20240620", **kwargs):
        super().__init__(api_key, **kwargs)
        self.model = model

    def request(self, image_b64: str, mime_type: str) -> str:
        data = self._post_json(
            self.URL,
            {
                "model": self.model,
                "max_tokens": 1000,
                "messages": [{
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": mime_type, "data": image_b64},
                        },
                        {"type": "text", "text": ANALYSIS_PROMPT},
                    ],
                }],
            },
            headers={"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
        )
        try:
            return data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, "unexpected response shape")


class GoogleVisionProvider(VisionProvider):
    """Label/color detection; no free text, so attributes come from keyword tables."""

    name = "google-vision"
    URL = "https://vision.googleapis.com/v1/images:annotate"

    SEASON_KEYWORDS: Tuple[Tuple[Season, Tuple[str, ...]], ...] = (
        (Season.SUMMER, ("summer", "short", "tank", "sandal", "light")),
        (Season.WINTER, ("winter", "coat", "sweater", "boot", "warm")),
        (Season.SPRING, ("spring", "light", "jacket")),
        (Season.AUTUMN, ("autumn", "fall", "jacket")),
    )

    SUB_CATEGORIES: Dict[str, str] = {
        GarmentCategory.TOP.value: "t-shirt",
        GarmentCategory.BOTTOM.value: "jeans",
        GarmentCategory.OUTERWEAR.value: "jacket",
        GarmentCategory.SHOES.value: "sneakers",
    }

    def request(self, image_b64: str, mime_type: str) -> Dict[str, Any]:
        data = self._post_json(
            self.URL,
            {
                "requests": [{
                    "image": {"content": image_b64},
                    "features": [
                        {"type": "LABEL_DETECTION", "maxResults": 20},
                        {"type": "IMAGE_PROPERTIES", "maxResults": 10},
                        {"type": "OBJECT_LOCALIZATION", "maxResults": 10},
                    ],
                }]
            },
            params={"key": self.api_key},
        )
        try:
            return data["responses"][0]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, "unexpected response shape")

    def parse(self, raw: Any) -> ClothingAttributes:
        if not isinstance(raw, dict):
            raise ProviderError(self.name, ProviderError.UNPARSEABLE, "response is not an object")
        if "error" in raw:
            raise ProviderError(self.name, ProviderError.CLIENT_ERROR, str(raw["error"]))

        labels = [
            (str(label.get("description", "")), float(label.get("score", 0.0)))
            for label in raw.get("labelAnnotations", [])
        ]

        category = GarmentCategory.TOP
        style = Style.CASUAL
        confidence = 0.5
        matched_category = False
        for description, score in labels:
            text = description.lower()
            if not matched_category:
                for keyword, value in CATEGORY_KEYWORDS:
                    if keyword in text:
                        category = value
                        confidence = max(confidence, score)
                        matched_category = True
                        break
            style_match = _keyword_match(text, STYLE_KEYWORDS, None)
            if style_match is not None and style == Style.CASUAL:
                style = style_match

        return ClothingAttributes(
            category=category,
            sub_category=self.SUB_CATEGORIES.get(category.value, "general"),
            colors=self.extract_colors(raw.get("imagePropertiesAnnotation")),
            style=style,
            seasons=self.infer_seasons([d for d, _ in labels]),
            confidence=normalize_confidence(confidence),
            detected_features=[d for d, _ in labels[:5]],
            suggested_tags=[d for d, _ in labels[:5] if len(d) < 20],
            provider=self.name,
        )

    @classmethod
    def infer_seasons(cls, descriptions: List[str]) -> List[Season]:
        for description in descriptions:
            text = description.lower()
            for season, keywords in cls.SEASON_KEYWORDS:
                if any(k in text for k in keywords):
                    return [season]
        return list(DEFAULT_SEASONS)

    @classmethod
    def extract_colors(cls, image_properties: Optional[Dict[str, Any]]) -> List[str]:
        dominant = ((image_properties or {}).get("dominantColors") or {}).get("colors") or []
        colors: List[str] = []
        for entry in dominant[:3]:
            name = rgb_to_basic_color(entry.get("color", {}))
            if name not in colors:
                colors.append(name)
        return colors or [UNKNOWN_COLOR]


def rgb_to_basic_color(rgb: Dict[str, Any]) -> str:
    """Coarse RGB naming used for provider-reported dominant colors."""
    r = rgb.get("red", 0) or 0
    g = rgb.get("green", 0) or 0
    b = rgb.get("blue", 0) or 0

    if r > 200 and g > 200 and b > 200:
        return "white"
    if r < 50 and g < 50 and b < 50:
        return "black"
    if r > 150 and g > 150 and b < 100:
        return "yellow"
    if r > 150 and g < 100 and b > 150:
        return "purple"
    if r > g and r > b:
        return "red"
    if g > r and g > b:
        return "green"
    if b > r and b > g:
        return "blue"
    if r > 100 and g > 100 and b > 100:
        return "gray"
    return "other"
