"""
Local Heuristic Analyzer - pixel-based garment hints without any network call

Purpose:
- Dominant color palette from a downsampled image
- Coarse "striped" signal from luminance changes along scanlines

Used by the vision gateway when providers return missing colors or low confidence.
"""

from typing import Dict, List, Tuple
from collections import Counter
from io import BytesIO
import colorsys
import logging

import numpy as np
from PIL import Image

from smart_wardrobe.models.garment import (
    ClothingAttributes,
    GarmentCategory,
    Season,
    Style,
    UNKNOWN_COLOR,
)

logger = logging.getLogger(__name__)

LOCAL_PROVIDER = "local-heuristics"
LOCAL_CONFIDENCE = 0.7

SAMPLE_SIZE = (64, 64)
MIN_ALPHA = 10
PALETTE_SIZE = 3
STRIPE_THRESHOLD = 10.0
OTHER_COLOR = "other"

# Upper hue bound (exclusive, degrees) for each chromatic band
HUE_BANDS: Tuple[Tuple[int, str], ...] = (
    (15, "red"),
    (40, "orange"),
    (65, "yellow"),
    (170, "green"),
    (200, "cyan"),
    (255, "blue"),
    (290, "purple"),
    (330, "pink"),
    (345, "brown"),
)


def rgb_to_hsl(r: int, g: int, b: int) -> Tuple[int, float, float]:
    """Return (hue in whole degrees, saturation, lightness)."""
    h, l, s = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
    return int(round(h * 360)) % 360, s, l


def map_rgb_to_color_name(r: int, g: int, b: int) -> str:
    hue, saturation, lightness = rgb_to_hsl(r, g, b)
    if lightness > 0.9:
        return "white"
    if lightness < 0.12:
        return "black"
    if saturation < 0.12:
        return "gray"
    if hue >= 345:
        return "red"
    for upper, name in HUE_BANDS:
        if hue < upper:
            return name
    return OTHER_COLOR


def _load_pixels(image_bytes: bytes) -> np.ndarray:
    """Decode and downsample to at most SAMPLE_SIZE, as an RGBA array."""
    with Image.open(BytesIO(image_bytes)) as img:
        img = img.convert("RGBA")
        img.thumbnail(SAMPLE_SIZE, Image.Resampling.BILINEAR)
        return np.asarray(img, dtype=np.uint8)


def extract_palette(pixels: np.ndarray, top_n: int = PALETTE_SIZE) -> List[str]:
    counts: Counter = Counter()
    cache: Dict[Tuple[int, int, int], str] = {}

    for r, g, b, a in pixels.reshape(-1, 4).tolist():
        if a < MIN_ALPHA:
            continue
        key = (r, g, b)
        name = cache.get(key)
        if name is None:
            name = cache[key] = map_rgb_to_color_name(r, g, b)
        counts[name] += 1

    palette = [name for name, _ in counts.most_common() if name != OTHER_COLOR]
    return palette[:top_n] or [UNKNOWN_COLOR]


def detect_stripes(pixels: np.ndarray, threshold: float = STRIPE_THRESHOLD) -> bool:
    """Average luminance delta between neighbouring samples on every other row."""
    rgb = pixels[::2, ::2, :3].astype(np.float64)
    if rgb.shape[0] == 0 or rgb.shape[1] < 2:
        return False

    luminance = 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]
    deltas = np.abs(np.diff(luminance, axis=1))
    return float(deltas.mean()) > threshold


def analyze_locally(image_bytes: bytes) -> ClothingAttributes:
    """
    Derive a partial garment description straight from pixel data.

    Raises PIL.UnidentifiedImageError (or OSError) for undecodable input;
    the caller decides how to degrade.
    """
    pixels = _load_pixels(image_bytes)
    colors = extract_palette(pixels)
    striped = detect_stripes(pixels)

    logger.debug(f"Local analysis: colors={colors}, striped={striped}")

    return ClothingAttributes(
        category=GarmentCategory.TOP,
        sub_category="shirt" if striped else "general",
        colors=colors,
        style=Style.CASUAL if striped else Style.MINIMAL,
        seasons=[Season.SPRING, Season.AUTUMN],
        confidence=LOCAL_CONFIDENCE,
        detected_features=["striped"] if striped else [],
        provider=LOCAL_PROVIDER,
    )
