"""
SkillCatalog - registry of skill definitions loaded from SKILL.md files

Layout::

    skills/
      weather/SKILL.md
      order-query/SKILL.md

Each SKILL.md starts with a YAML frontmatter block::

    ---
    name: weather
    description: 查询城市天气与未来预报
    allowed-tools: getWeather getForecast
    ---
    (system prompt body)

Only the frontmatter is parsed at startup; the prompt body is read on first use.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .models import SkillDefinition

logger = logging.getLogger(__name__)

SKILL_FILE_NAME = "SKILL.md"
_FRONTMATTER_DELIMITER = "---"


def split_frontmatter(text: str) -> Tuple[Optional[str], str]:
    """Return (frontmatter, body); frontmatter is None when the file has none."""
    text = text.lstrip("\ufeff")
    lines = text.splitlines()
    if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
        return None, text.strip()
    for i in range(1, len(lines)):
        if lines[i].strip() == _FRONTMATTER_DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1:]).strip()
    return None, text.strip()


def parse_allowed_tools(value: Any) -> Tuple[str, ...]:
    """``allowed-tools`` may be a space/comma separated string or a YAML list."""
    if not value:
        return ()
    if isinstance(value, str):
        items = re.split(r"[,\s]+", value)
    else:
        items = [str(v) for v in value]
    return tuple(item.strip() for item in items if item and item.strip())


class SkillCatalog:
    """
    Static registry of SkillDefinitions, loaded once at startup.

    Example:
        catalog = SkillCatalog("examples/skills")
        catalog.load()
        skill = catalog.get("weather")
        prompt = catalog.load_prompt("weather")
    """

    def __init__(self, skills_dir: Optional[str] = None):
        self.skills_dir = Path(skills_dir) if skills_dir else None
        self._skills: Dict[str, SkillDefinition] = {}
        self._prompts: Dict[str, str] = {}

    def load(self) -> int:
        """Scan ``skills_dir/*/SKILL.md``. Returns the number of skills loaded."""
        if self.skills_dir is None:
            return 0
        if not self.skills_dir.is_dir():
            logger.warning(f"[SkillCatalog] Skills directory not found: {self.skills_dir}")
            return 0

        for skill_file in sorted(self.skills_dir.glob(f"*/{SKILL_FILE_NAME}")):
            definition = self._parse_definition(skill_file)
            if definition is None:
                continue
            if definition.name in self._skills:
                logger.warning(f"[SkillCatalog] Duplicate skill '{definition.name}' in {skill_file} ignored")
                continue
            self._skills[definition.name] = definition
            logger.info(
                f"[SkillCatalog] Loaded skill {definition.name} "
                f"(tools: {', '.join(definition.allowed_tools) or 'none'})"
            )

        logger.info(f"[SkillCatalog] {len(self._skills)} skills loaded from {self.skills_dir}")
        return len(self._skills)

    def _parse_definition(self, skill_file: Path) -> Optional[SkillDefinition]:
        try:
            frontmatter, _ = split_frontmatter(skill_file.read_text(encoding="utf-8"))
            meta = yaml.safe_load(frontmatter) if frontmatter is not None else None
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"[SkillCatalog] Cannot read {skill_file}: {e}")
            return None

        if not isinstance(meta, dict) or not meta.get("name"):
            logger.warning(f"[SkillCatalog] {skill_file} has no frontmatter 'name', skipped")
            return None

        return SkillDefinition(
            name=str(meta["name"]).strip().lower(),
            description=str(meta.get("description") or "").strip(),
            allowed_tools=parse_allowed_tools(meta.get("allowed-tools", meta.get("allowed_tools"))),
            prompt_source=str(skill_file),
        )

    def register(self, definition: SkillDefinition, prompt: Optional[str] = None) -> None:
        """Add a definition programmatically, optionally with its prompt text."""
        self._skills[definition.name] = definition
        if prompt is not None:
            self._prompts[definition.name] = prompt

    def get(self, name: str) -> Optional[SkillDefinition]:
        return self._skills.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._skills

    def __len__(self) -> int:
        return len(self._skills)

    @property
    def names(self) -> List[str]:
        return sorted(self._skills)

    def list_skill_definitions(self) -> List[SkillDefinition]:
        return [self._skills[name] for name in self.names]

    def list_skills(self) -> Dict[str, str]:
        """{name: description} for every skill, sorted by name."""
        return {name: self._skills[name].description for name in self.names}

    def load_prompt(self, name: str) -> str:
        """System prompt (SKILL.md body) of a skill; read once, then cached."""
        if name in self._prompts:
            return self._prompts[name]

        definition = self._skills.get(name)
        if definition is None:
            raise KeyError(f"Unknown skill: {name}")
        if not definition.prompt_source:
            prompt = ""
        else:
            _, prompt = split_frontmatter(Path(definition.prompt_source).read_text(encoding="utf-8"))
        self._prompts[name] = prompt
        return prompt
