"""
Tests for provider response normalization and the retry policy
"""
import pytest

from smart_wardrobe.services.vision_providers import (
    GoogleVisionProvider,
    OpenAIVisionProvider,
    ProviderError,
    extract_json_object,
    normalize_attributes,
    normalize_category,
    normalize_confidence,
    normalize_seasons,
    normalize_style,
)

from conftest import ScriptedProvider, provider_error, provider_json, solid_image_bytes


class TestNormalization:
    @pytest.mark.parametrize("raw,expected", [
        ("top", "top"),
        ("Denim Jacket", "outerwear"),
        ("running sneakers", "shoes"),
        ("skinny jeans", "bottom"),
        ("leather belt", "accessory"),
        ("spaceship", "top"),
        (None, "top"),
    ])
    def test_category(self, raw, expected):
        assert normalize_category(raw).value == expected

    @pytest.mark.parametrize("raw,expected", [
        ("Business casual", "casual"),
        ("business", "formal"),
        ("retro", "vintage"),
        ("", "casual"),
        ("baroque", "casual"),
    ])
    def test_style(self, raw, expected):
        assert normalize_style(raw).value == expected

    def test_seasons_accept_aliases_and_strings(self):
        assert [s.value for s in normalize_seasons("fall")] == ["autumn"]
        assert [s.value for s in normalize_seasons(["Summer", "summer", "winter"])] == ["summer", "winter"]
        assert len(normalize_seasons(["all"])) == 4

    def test_seasons_default(self):
        assert [s.value for s in normalize_seasons(["monsoon"])] == ["spring", "autumn"]

    @pytest.mark.parametrize("raw,expected", [
        (0.8, 0.8),
        ("0.65", 0.65),
        (85, 0.85),
        (-1, 0.0),
        (500, 1.0),
        ("high", 0.5),
        (None, 0.5),
    ])
    def test_confidence_is_clamped(self, raw, expected):
        assert normalize_confidence(raw) == pytest.approx(expected)

    def test_attributes_from_camel_case_payload(self):
        attrs = normalize_attributes(
            {
                "category": "Shirt",
                "subCategory": "oxford shirt",
                "colors": ["Light Blue", "light blue", "WHITE"],
                "style": "formal",
                "season": ["spring", "fall"],
                "features": ["cotton"],
                "tags": "office",
                "confidence": 92,
            },
            "gemini",
        )

        assert attrs.category == "top"
        assert attrs.sub_category == "oxford shirt"
        assert attrs.colors == ["light blue", "white"]
        assert attrs.style == "formal"
        assert attrs.seasons == ["spring", "autumn"]
        assert attrs.detected_features == ["cotton"]
        assert attrs.suggested_tags == ["office"]
        assert attrs.confidence == pytest.approx(0.92)
        assert attrs.provider == "gemini"

    def test_attributes_fill_defaults(self):
        attrs = normalize_attributes({}, "openai")

        assert attrs.category == "top"
        assert attrs.sub_category == "general"
        assert attrs.colors == ["unknown"]
        assert attrs.seasons == ["spring", "autumn"]


class TestExtractJson:
    def test_finds_object_inside_prose(self):
        assert extract_json_object('Sure! ```json\n{"a": 1}\n``` done', "x") == {"a": 1}

    @pytest.mark.parametrize("text", ["no json here", "{not: valid}", "", None])
    def test_unparseable(self, text):
        with pytest.raises(ProviderError) as exc:
            extract_json_object(text, "x")
        assert exc.value.kind == ProviderError.UNPARSEABLE
        assert not exc.value.retryable


class TestRetryPolicy:
    @pytest.mark.parametrize("kind", [ProviderError.TIMEOUT, ProviderError.SERVER_ERROR])
    async def test_retryable_error_is_retried_once(self, kind):
        provider = ScriptedProvider("gemini", [provider_error("gemini", kind), provider_json()])

        result = await provider.analyze(solid_image_bytes())

        assert provider.calls == 2
        assert result.provider == "gemini"

    async def test_second_retryable_failure_propagates(self):
        provider = ScriptedProvider("gemini", [provider_error("gemini", ProviderError.TIMEOUT)])

        with pytest.raises(ProviderError):
            await provider.analyze(solid_image_bytes())
        assert provider.calls == 2

    @pytest.mark.parametrize("kind", [
        ProviderError.CLIENT_ERROR,
        ProviderError.CONNECTION,
        ProviderError.UNPARSEABLE,
    ])
    async def test_non_retryable_error_fails_immediately(self, kind):
        provider = ScriptedProvider("gemini", [provider_error("gemini", kind), provider_json()])

        with pytest.raises(ProviderError) as exc:
            await provider.analyze(solid_image_bytes())
        assert exc.value.kind == kind
        assert provider.calls == 1

    async def test_unparseable_answer_is_not_retried(self):
        provider = ScriptedProvider("gemini", ["I cannot see a garment in this photo."])

        with pytest.raises(ProviderError) as exc:
            await provider.analyze(solid_image_bytes())
        assert exc.value.kind == ProviderError.UNPARSEABLE
        assert provider.calls == 1


class TestProviderConfiguration:
    def test_missing_key_is_unconfigured(self):
        assert not OpenAIVisionProvider(None).is_configured
        assert OpenAIVisionProvider("sk-test").is_configured


class TestGoogleVisionParsing:
    def test_labels_and_colors(self):
        provider = GoogleVisionProvider("key")
        raw = {
            "labelAnnotations": [
                {"description": "Jeans", "score": 0.93},
                {"description": "Denim", "score": 0.9},
                {"description": "Streetwear", "score": 0.7},
            ],
            "imagePropertiesAnnotation": {
                "dominantColors": {
                    "colors": [{"color": {"red": 20, "green": 40, "blue": 160}, "score": 0.8}]
                }
            },
        }

        attrs = provider.parse(raw)

        assert attrs.category == "bottom"
        assert attrs.sub_category == "jeans"
        assert attrs.style == "street"
        assert attrs.confidence == pytest.approx(0.93)
        assert attrs.provider == "google-vision"
        assert attrs.colors[0] == "blue"

    def test_error_payload(self):
        with pytest.raises(ProviderError) as exc:
            GoogleVisionProvider("key").parse({"error": {"message": "bad key"}})
        assert exc.value.kind == ProviderError.CLIENT_ERROR
