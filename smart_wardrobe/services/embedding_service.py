"""
Embedding Service - Text Embeddings for Garment Search

Garments are embedded from their text description (category, colors, style,
tags); a query is embedded the same way and ranked by cosine similarity.
"""

from typing import List, Optional, Tuple
import asyncio
import logging

import numpy as np
from openai import OpenAI, OpenAIError

from smart_wardrobe.models.garment import Garment

logger = logging.getLogger(__name__)


class EmbeddingService:
    """OpenAI text-embedding wrapper with numpy similarity helpers"""

    def __init__(self, api_key: Optional[str], model: str = "text-embedding-3-small",
                 timeout: float = 15.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: Optional[OpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def encode_text(self, text: str) -> np.ndarray:
        """
        Embed text and L2-normalize it

        Args:
            text: Free text (garment description or search query)

        Returns:
            Normalized embedding vector
        """
        response = self.client.embeddings.create(model=self.model, input=text)
        vector = np.asarray(response.data[0].embedding, dtype=np.float32)
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector

    async def embed(self, text: str) -> Optional[List[float]]:
        """Embedding as a plain list, or None when unavailable"""
        if not self.is_configured or not text.strip():
            return None
        try:
            vector = await asyncio.to_thread(self.encode_text, text)
            return vector.tolist()
        except OpenAIError as e:
            logger.warning(f"Embedding generation failed: {e}")
            return None

    @staticmethod
    def compute_similarity(embedding1, embedding2) -> float:
        """Cosine similarity between two embeddings"""
        emb1 = np.asarray(embedding1, dtype=np.float32)
        emb2 = np.asarray(embedding2, dtype=np.float32)
        if emb1.shape != emb2.shape:
            return 0.0
        denom = float(np.linalg.norm(emb1) * np.linalg.norm(emb2))
        if denom == 0.0:
            return 0.0
        return float(np.dot(emb1, emb2) / denom)

    def rank_by_similarity(
        self,
        query_embedding: List[float],
        garments: List[Garment],
        min_similarity: float = 0.2,
    ) -> List[Tuple[Garment, float]]:
        """Garments with an embedding, sorted by similarity (highest first)"""
        scored = []
        for garment in garments:
            if not garment.embedding:
                continue
            similarity = self.compute_similarity(query_embedding, garment.embedding)
            if similarity >= min_similarity:
                scored.append((garment, round(similarity, 3)))
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored


def keyword_rank(query: str, garments: List[Garment]) -> List[Tuple[Garment, float]]:
    """Fallback search: share of query terms found in the garment description"""
    terms = [t for t in query.lower().split() if t]
    if not terms:
        return []
    scored = []
    for garment in garments:
        description = garment.describe().lower()
        if garment.notes:
            description += " " + garment.notes.lower()
        hits = sum(1 for t in terms if t in description)
        if hits:
            scored.append((garment, round(hits / len(terms), 3)))
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
