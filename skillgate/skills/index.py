"""
SkillIndex - embedding pre-filter over the skill catalog

Narrows the skills shown to the router to the ones closest to the user
message. It is an optimization only: whenever it cannot answer, it returns
every skill.
"""

import logging
import math
from typing import Dict, List, Optional

from ..constants import FALLBACK_SKILL_NAME, SKILL_TOP_K
from ..protocols import EmbeddingClientProtocol
from .loader import SkillCatalog
from .models import SkillDefinition

logger = logging.getLogger(__name__)


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class SkillIndex:
    """
    Top-K skill retrieval by cosine similarity of description embeddings.

    Args:
        catalog: Skill catalog to index
        embedder: Embedding client; without one the index is never ready
        top_k: Number of skills returned per query
        fallback_skill: Always part of the result when it exists
    """

    def __init__(
        self,
        catalog: SkillCatalog,
        embedder: Optional[EmbeddingClientProtocol] = None,
        top_k: int = SKILL_TOP_K,
        fallback_skill: str = FALLBACK_SKILL_NAME,
    ):
        self._catalog = catalog
        self._embedder = embedder
        self._top_k = top_k
        self._fallback_skill = fallback_skill
        self._vectors: Dict[str, List[float]] = {}
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def build(self) -> bool:
        """Embed every skill's name and description. Returns readiness."""
        if self._embedder is None:
            return False
        skills = self._catalog.list_skill_definitions()
        try:
            vectors = await self._embedder.embed([f"{s.name}: {s.description}" for s in skills])
        except Exception as e:
            logger.warning(f"[SkillIndex] Embedding skills failed, pre-filter disabled: {e}")
            return False
        self._vectors = {skill.name: vector for skill, vector in zip(skills, vectors)}
        self._ready = True
        logger.info(f"[SkillIndex] Indexed {len(self._vectors)} skills")
        return True

    async def retrieve(self, message: str) -> List[SkillDefinition]:
        skills = self._catalog.list_skill_definitions()
        if self._embedder is None or len(skills) <= self._top_k:
            return skills
        if not self._ready and not await self.build():
            return skills

        try:
            query = (await self._embedder.embed([message]))[0]
        except Exception as e:
            logger.warning(f"[SkillIndex] Query embedding failed, using all skills: {e}")
            return skills

        scored = sorted(
            (s for s in skills if s.name in self._vectors),
            key=lambda s: cosine_similarity(query, self._vectors[s.name]),
            reverse=True,
        )
        selected = scored[: self._top_k]
        fallback = self._catalog.get(self._fallback_skill)
        if fallback is not None and fallback not in selected:
            selected.append(fallback)
        logger.debug(f"[SkillIndex] Candidates: {[s.name for s in selected]}")
        return selected
