"""Smart wardrobe backend: garment analysis, outfit scoring and preference learning."""

__version__ = "1.0.0"
