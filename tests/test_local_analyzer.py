"""
Tests for the pixel-based local analyzer
"""
import numpy as np
import pytest
from PIL import UnidentifiedImageError

from smart_wardrobe.services.local_analyzer import (
    LOCAL_CONFIDENCE,
    LOCAL_PROVIDER,
    analyze_locally,
    detect_stripes,
    extract_palette,
    map_rgb_to_color_name,
)

from conftest import solid_image_bytes, striped_image_bytes


class TestColorNames:
    @pytest.mark.parametrize("rgb,expected", [
        ((255, 255, 255), "white"),
        ((0, 0, 0), "black"),
        ((128, 128, 128), "gray"),
        ((200, 20, 20), "red"),
        ((20, 40, 160), "blue"),
        ((30, 160, 40), "green"),
        ((230, 220, 30), "yellow"),
    ])
    def test_maps_rgb_to_basic_names(self, rgb, expected):
        assert map_rgb_to_color_name(*rgb) == expected


class TestPalette:
    def test_transparent_pixels_are_ignored(self):
        pixels = np.zeros((4, 4, 4), dtype=np.uint8)
        pixels[..., 3] = 0
        assert extract_palette(pixels) == ["unknown"]

    def test_palette_is_ordered_by_frequency(self):
        pixels = np.zeros((4, 4, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        pixels[:3, :, :3] = (20, 40, 160)  # 12 blue
        pixels[3, :, :3] = (255, 255, 255)  # 4 white
        assert extract_palette(pixels) == ["blue", "white"]


class TestStripes:
    def test_uniform_image_is_not_striped(self):
        pixels = np.full((16, 16, 4), 120, dtype=np.uint8)
        assert detect_stripes(pixels) is False

    def test_single_column_cannot_be_striped(self):
        pixels = np.full((16, 1, 4), 120, dtype=np.uint8)
        assert detect_stripes(pixels) is False


class TestAnalyzeLocally:
    def test_solid_blue_image(self):
        result = analyze_locally(solid_image_bytes((20, 40, 160)))

        assert result.colors == ["blue"]
        assert result.provider == LOCAL_PROVIDER
        assert result.confidence == LOCAL_CONFIDENCE
        assert result.sub_category == "general"
        assert result.detected_features == []

    def test_striped_image_is_flagged(self):
        result = analyze_locally(striped_image_bytes())

        assert "striped" in result.detected_features
        assert result.sub_category == "shirt"
        assert set(result.colors) == {"black", "white"}

    def test_jpeg_input(self):
        result = analyze_locally(solid_image_bytes((200, 20, 20), fmt="JPEG"))
        assert result.colors[0] == "red"

    def test_garbage_bytes_raise(self):
        with pytest.raises(UnidentifiedImageError):
            analyze_locally(b"definitely not an image")
