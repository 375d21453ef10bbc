"""
AI text generation for coaches.

A thin wrapper around the Anthropic SDK plus the prompt/response handling for
the two features that use it: feedback rewriting ("assist") and lesson
drafting. Lesson drafting degrades to a deterministic template when the model
is unavailable or returns something that does not parse.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import APIError, RateLimitError

from playbookd import settings

logger = logging.getLogger(__name__)


class AIClientError(Exception):
    """Raised when API calls fail."""


class AINotConfigured(AIClientError):
    """Raised when no API key is available."""


class RateLimitExceeded(AIClientError):
    """Raised when we hit rate limits."""


@dataclass
class AIConfig:
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float = 0.7

    def __post_init__(self) -> None:
        if not self.api_key:
            raise AINotConfigured("AI service not configured")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")

    @classmethod
    def from_settings(cls, **overrides) -> "AIConfig":
        return cls(api_key=settings.ANTHROPIC_API_KEY, model=settings.ANTHROPIC_MODEL, **overrides)


class AIClient:
    def __init__(self, config: AIConfig) -> None:
        self._config = config
        self._client = anthropic.Anthropic(api_key=config.api_key)

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.")
        except APIError as e:
            logger.error("API error", extra={"error": str(e)})
            raise AIClientError(f"API error: {e.message}")

        parts = [b.text for b in response.content if getattr(b, "type", None) == "text"]
        if not parts:
            raise AIClientError("Empty response from model")
        return "".join(parts).strip()


def get_client(**overrides) -> AIClient:
    return AIClient(AIConfig.from_settings(**overrides))


# ---------------------------------------------------------------------------
# coach feedback assist
# ---------------------------------------------------------------------------
ASSIST_ACTIONS = ("transform", "polish")
ASSIST_CONTEXTS = ("summary", "nextSteps", "strength", "improvement")

_ASSIST_SUBJECT = {
    "summary": "summary feedback for an athlete",
    "nextSteps": "clear, specific next steps for an athlete",
    "strength": "a strength statement for an athlete (one concise sentence)",
    "improvement": "a constructive area for improvement (one concise sentence)",
}


def build_assist_prompts(text: str, action: str, context: str) -> tuple[str, str]:
    system = (
        "You are a professional athletic coach assistant. Your tone is encouraging, "
        "specific and actionable."
    )
    subject = _ASSIST_SUBJECT[context]
    if action == "transform":
        user = (
            f"Transform these rough coaching notes into {subject}. Keep the original "
            f"meaning and key points:\n\n{text}\n\n"
            "Provide only the result without any preamble or explanation."
        )
    else:
        user = (
            f"Polish this text, which is {subject}, so it is clearer and more impactful "
            f"while keeping the same meaning:\n\n{text}\n\n"
            "Provide only the polished version without any preamble or explanation."
        )
    return system, user


def assist(text: str, action: str, context: str, client: Optional[AIClient] = None) -> str:
    system, user = build_assist_prompts(text, action, context)
    return (client or get_client()).complete(system, user)


# ---------------------------------------------------------------------------
# lesson drafting
# ---------------------------------------------------------------------------
SPORT_NAMES = {
    "bjj": "Brazilian Jiu-Jitsu",
    "brazilian jiu-jitsu": "Brazilian Jiu-Jitsu",
    "wrestling": "Wrestling",
    "boxing": "Boxing",
    "mma": "MMA",
    "baseball": "Baseball",
    "basketball": "Basketball",
    "football": "Football",
    "soccer": "Soccer",
    "softball": "Softball",
    "volleyball": "Volleyball",
}

LESSON_SYSTEM_PROMPT = (
    "You are an elite coach writing a structured lesson plan. Reply with a single JSON "
    "object with keys: title, objectives (list of strings), tags (list of strings), and "
    "sections (list of objects with title, type, content, duration in minutes). "
    "No prose outside the JSON."
)


def normalize_sport_name(sport: str) -> str:
    return SPORT_NAMES.get((sport or "").strip().lower(), sport)


def parse_duration(duration: Any, default: int = 60) -> int:
    """'45 minutes' -> 45; ints pass through."""
    if isinstance(duration, int):
        return duration
    m = re.search(r"\d+", str(duration or ""))
    return int(m.group(0)) if m else default


def parse_lesson_json(text: str) -> Optional[Dict[str, Any]]:
    """
    Pull the first JSON object out of a model reply (code fences and chatter
    around it are ignored). Returns None when nothing usable is found.
    """
    if not text:
        return None
    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("{")
    if start == -1:
        return None
    try:
        obj, _ = json.JSONDecoder().raw_decode(candidate[start:])
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict) or not isinstance(obj.get("sections"), list):
        return None
    return obj


def build_template_lesson(topic: str, sport: str, level: str, duration: int,
                          detailed_instructions: Optional[str] = None) -> Dict[str, Any]:
    display_sport = normalize_sport_name(sport)
    focus = f"\n\n**Additional Focus:**\n{detailed_instructions}" if detailed_instructions else ""
    sections: List[Dict[str, Any]] = [
        {
            "title": "Dynamic Warm-Up & Technical Foundation",
            "type": "text",
            "content": (
                f"Start with sport-specific movement patterns that prepare the body for {topic}.\n\n"
                "- Body positioning: stance, weight distribution and alignment\n"
                "- Breathing coordinated with movement\n"
                "- Safety and proper progression"
            ),
            "duration": 10,
        },
        {
            "title": "Technical Instruction",
            "type": "text",
            "content": (
                f"**Core breakdown of {topic}**\n\n"
                "1. Setup\n2. Initial movement\n3. Transition\n4. Follow-through\n\n"
                f"**Common mistakes & corrections** for {display_sport} athletes.{focus}"
            ),
            "duration": 25,
        },
        {
            "title": "Progressive Practice & Live Application",
            "type": "drill",
            "content": f"Drill {topic} at increasing speed and resistance, then apply it in live {display_sport} situations.",
            "duration": 8,
        },
        {
            "title": "Cool-Down & Review",
            "type": "reflection",
            "content": (
                f"Review the primary cues for {topic}, the most common mistake to avoid, "
                "and assign 10 focused repetitions daily."
            ),
            "duration": 2,
        },
    ]
    return {
        "title": f"{display_sport}: {topic}",
        "sport": sport,
        "level": level,
        "duration": duration,
        "objectives": [
            f"Execute {topic} techniques with proper form and timing",
            f"Apply {topic} principles in competitive scenarios",
            f"Understand the biomechanical foundations of {topic}",
            f"Integrate {topic} into overall {sport} strategy",
        ],
        "tags": [sport.lower(), topic.lower(), level, "technique"],
        "sections": sections,
    }


def generate_lesson(topic: str, sport: str, level: str = "intermediate", duration: Any = "45 minutes",
                    detailed_instructions: Optional[str] = None,
                    client: Optional[AIClient] = None) -> tuple[Dict[str, Any], str]:
    """
    Returns (lesson, source) where source is "ai" or "template".
    """
    minutes = parse_duration(duration)
    template = build_template_lesson(topic, sport, level, minutes, detailed_instructions)

    try:
        client = client or get_client(max_tokens=4096)
    except AINotConfigured:
        return template, "template"

    prompt = (
        f"Sport: {normalize_sport_name(sport)}\nTopic: {topic}\nLevel: {level}\n"
        f"Total duration: {minutes} minutes\n"
    )
    if detailed_instructions:
        prompt += f"Coach instructions: {detailed_instructions}\n"

    reply = client.complete(LESSON_SYSTEM_PROMPT, prompt)
    parsed = parse_lesson_json(reply)
    if parsed is None:
        logger.warning("unparseable lesson reply, using template", extra={"topic": topic})
        return template, "template"

    lesson = {**template, **{k: v for k, v in parsed.items() if v}}
    lesson.update({"sport": sport, "level": level, "duration": minutes})
    return lesson, "ai"
