"""Parsing of LLM free text: plans, ask-user steps, observer verdicts and routing lines.

The LLM's output format is the protocol between the state machine and the
model. Everything that interprets that format lives here.
"""

import logging
import re
from typing import Iterable, List, Optional

from ..constants import (
    ASK_USER_MARKERS,
    ASK_USER_SEPARATORS,
    DEFAULT_ASK_USER_QUESTION,
    OBSERVER_DEFAULT_TEXT,
    SYNTHESIS_MARKERS,
    SYNTHESIS_STEP,
    VERDICT_OK,
    VERDICT_REPLAN,
)
from ..models import Intent
from .models import Observation

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(
    r"^(?:[-*•]\s+|\d+\s*[.、)）]\s*|(?:步骤|step)\s*\d+\s*[:：.、]\s*)",
    re.IGNORECASE,
)


def strip_list_marker(line: str) -> str:
    """Drop a leading bullet or step number ("1. ", "- ", "步骤2：")."""
    return _LIST_MARKER.sub("", line.strip(), count=1).strip()


# ── Ask-user steps ──

def is_ask_user_step(step: str) -> bool:
    text = strip_list_marker(step)
    return any(text.startswith(marker) for marker in ASK_USER_MARKERS)


def extract_ask_user_question(step: str) -> str:
    """Question text after the marker and separator, or the default question."""
    text = strip_list_marker(step)
    for marker in ASK_USER_MARKERS:
        if not text.startswith(marker):
            continue
        rest = text[len(marker):].lstrip()
        if rest and rest[0] in ASK_USER_SEPARATORS:
            question = rest[1:].strip()
            if question:
                return question
        break
    return DEFAULT_ASK_USER_QUESTION


# ── Plans ──

def is_synthesis_step(step: str) -> bool:
    lowered = step.lower()
    return any(marker in lowered for marker in SYNTHESIS_MARKERS)


def normalize_plan(steps: List[str]) -> List[str]:
    """Apply the plan policy to parsed steps.

    A plan containing an ask-user step is reduced to that step alone, so the
    question is asked before any tool runs. Any other plan ends with a
    synthesis step.
    """
    for index, step in enumerate(steps):
        if is_ask_user_step(step):
            if index > 0 or len(steps) > 1:
                logger.info(f"[PlanParser] Plan reduced to its ask-user step: {step}")
            return [step]
    steps = list(steps)
    if not steps or not is_synthesis_step(steps[-1]):
        steps.append(SYNTHESIS_STEP)
    return steps


def parse_plan(text: str) -> List[str]:
    """One step per non-empty line; headings, fences and numbering are dropped."""
    steps = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("```"):
            continue
        line = strip_list_marker(line)
        if line:
            steps.append(line)
    return normalize_plan(steps)


# ── Observer ──

def parse_observation(text: Optional[str]) -> Observation:
    """``REPLAN...`` (any case) asks for a new plan; anything else continues."""
    text = (text or "").strip()
    if not text:
        return Observation(verdict=VERDICT_OK, text=OBSERVER_DEFAULT_TEXT)
    head = text.lstrip("*`# ").upper()
    verdict = VERDICT_REPLAN if head.startswith(VERDICT_REPLAN) else VERDICT_OK
    return Observation(verdict=verdict, text=text)


# ── Routing ──

def match_skill_name(candidate: str, known_skills: Iterable[str]) -> Optional[str]:
    """Exact key match, else the longest known key contained in the candidate."""
    name = candidate.strip().strip("`'\"*").strip().lower()
    if not name:
        return None
    known = sorted(set(known_skills), key=lambda k: (-len(k), k))
    if name in known:
        return name
    for key in known:
        if key in name:
            return key
    return None


def parse_routing(text: str, known_skills: Iterable[str], user_message: str) -> List[Intent]:
    """
    Parse router output, one intent per line.

    Accepted line forms are ``skill`` (the sub-task is then the whole user
    message) and ``skill|sub-task``. Lines naming no known skill are dropped.
    """
    known = list(known_skills)
    intents: List[Intent] = []
    for raw in (text or "").splitlines():
        line = strip_list_marker(raw).strip("`'\"")
        if not line:
            continue
        name_part, _, sub_task = line.replace("｜", "|").partition("|")
        skill_name = match_skill_name(name_part, known)
        if skill_name is None:
            logger.debug(f"[IntentRouter] Unmatched routing line: {raw!r}")
            continue
        intents.append(Intent(skill_name=skill_name, sub_task=sub_task.strip() or user_message))
    return intents
