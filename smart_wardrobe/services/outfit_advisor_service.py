"""
Outfit Advisor Service - LLM-suggested outfits

Purpose:
- Serialize the wardrobe and learned weights into a stylist prompt
- Ask Gemini first, then OpenAI, for 5-8 outfit suggestions
- Validate the answer against the real wardrobe

Any provider or parse failure yields None so the caller can fall back to the
rule-based composer; malformed model output never leaves this module.
"""

from typing import Optional, List, Dict, Any
import asyncio
import json
import logging

import requests
from openai import OpenAI
from pydantic import ValidationError

from smart_wardrobe.models.garment import Garment
from smart_wardrobe.models.outfit import AIOutfitResponse, RankedOutfit
from smart_wardrobe.models.preference import RecommendationWeights, canonical_combination
from smart_wardrobe.services.vision_providers import ProviderError, extract_json_object

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class OutfitAdvisor:
    """
    Text-only LLM advisor for outfit combinations
    """

    def __init__(
        self,
        gemini_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        gemini_model: str = "gemini-1.5-flash",
        openai_model: str = "gpt-4o-mini",
        timeout: float = 15.0,
    ):
        self.gemini_api_key = gemini_api_key
        self.openai_api_key = openai_api_key
        self.gemini_model = gemini_model
        self.openai_model = openai_model
        self.timeout = timeout
        self._openai_client: Optional[OpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini_api_key or self.openai_api_key)

    async def suggest(
        self,
        garments: List[Garment],
        weights: RecommendationWeights,
        occasion: Optional[str] = None,
        profile_preferences: Optional[Dict[str, Any]] = None,
    ) -> Optional[List[RankedOutfit]]:
        prompt = self._create_prompt(garments, weights, occasion, profile_preferences)

        backends = []
        if self.gemini_api_key:
            backends.append(("gemini", self._ask_gemini))
        if self.openai_api_key:
            backends.append(("openai", self._ask_openai))

        for name, ask in backends:
            try:
                text = await asyncio.to_thread(ask, prompt)
                outfits = self._parse_response(text, garments, weights, name)
            except (ProviderError, ValidationError) as e:
                logger.warning(f"{name} outfit suggestions failed: {e}")
                continue
            except Exception as e:
                logger.warning(f"{name} outfit suggestions failed unexpectedly: {e}")
                continue

            if outfits:
                logger.info(f"✨ {len(outfits)} outfit suggestions from {name}")
                return outfits
            logger.warning(f"{name} returned no usable outfits")

        return None

    def _create_prompt(
        self,
        garments: List[Garment],
        weights: RecommendationWeights,
        occasion: Optional[str],
        profile_preferences: Optional[Dict[str, Any]],
    ) -> str:
        wardrobe = [
            {
                "id": g.id,
                "category": g.category,
                "subCategory": g.sub_category,
                "colors": g.colors,
                "style": g.style,
                "season": g.seasons,
                "wearCount": g.wear_count,
                "lastWorn": g.last_worn.isoformat() if g.last_worn else None,
            }
            for g in garments
        ]
        preferences = {
            "occasion": occasion or "daily",
            "styleWeights": weights.style_weights,
            "colorWeights": weights.color_weights,
            "occasionWeights": weights.occasion_weights,
            **(profile_preferences or {}),
        }

        return f"""As a professional fashion stylist, recommend outfit combinations from this wardrobe.

Wardrobe:
{json.dumps(wardrobe, indent=2)}

User preferences (positive weights are liked, negative disliked):
{json.dumps(preferences, indent=2)}

Give 5-8 outfit suggestions. Use only the ids listed above. Respond in JSON format:
{{
  "recommendations": [
    {{
      "items": ["garment ids"],
      "reason": "why these work together",
      "occasion": "suitable occasion",
      "style": "style description",
      "colorHarmony": 8,
      "seasonSuitability": ["suitable seasons"],
      "tips": "styling tip"
    }}
  ]
}}
"""

    def _ask_gemini(self, prompt: str) -> str:
        try:
            response = requests.post(
                GEMINI_URL.format(model=self.gemini_model),
                params={"key": self.gemini_api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except requests.Timeout as e:
            raise ProviderError("gemini", ProviderError.TIMEOUT, str(e))
        except requests.RequestException as e:
            raise ProviderError("gemini", ProviderError.CONNECTION, str(e))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError("gemini", ProviderError.UNPARSEABLE, str(e))

    @property
    def openai_client(self) -> OpenAI:
        # One attempt per call; the timeout is the whole budget
        if self._openai_client is None:
            self._openai_client = OpenAI(
                api_key=self.openai_api_key, timeout=self.timeout, max_retries=0
            )
        return self._openai_client

    def _ask_openai(self, prompt: str) -> str:
        response = self.openai_client.chat.completions.create(
            model=self.openai_model,
            messages=[
                {
                    "role": "system",
                    "content": "You are a professional fashion stylist AI. Answer with JSON only."
                },
                {"role": "user", "content": prompt}
            ],
            temperature=0.7,
            max_tokens=2000
        )
        return response.choices[0].message.content or ""

    def _parse_response(
        self,
        response_text: str,
        garments: List[Garment],
        weights: RecommendationWeights,
        provider: str,
    ) -> List[RankedOutfit]:
        """Validate model output; drop unknown ids and rejected combinations."""
        raw = extract_json_object(response_text, provider)
        parsed = AIOutfitResponse.model_validate(_snake_case_keys(raw))

        known_ids = {g.id for g in garments}
        rejected = set(weights.rejected_combinations)
        outfits: List[RankedOutfit] = []

        for suggestion in parsed.recommendations:
            items = [i for i in dict.fromkeys(suggestion.items) if i in known_ids]
            if len(items) < 2 or canonical_combination(items) in rejected:
                continue
            outfits.append(RankedOutfit(
                items=items,
                style=suggestion.style or None,
                seasons=suggestion.season_suitability,
                color_harmony=suggestion.color_harmony / 10.0,
                occasion=suggestion.occasion,
                source=provider,
                reason=suggestion.reason or None,
                tips=suggestion.tips,
            ))
        return outfits


_KEY_MAP = {
    "colorHarmony": "color_harmony",
    "seasonSuitability": "season_suitability",
}


def _snake_case_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    recommendations = raw.get("recommendations")
    if not isinstance(recommendations, list):
        return raw
    return {
        "recommendations": [
            {_KEY_MAP.get(k, k): v for k, v in item.items()} if isinstance(item, dict) else item
            for item in recommendations
        ]
    }
