"""
Preflight - brief stabilizer run before generation.

Idle:    a short task request with no platform or context marker is
         "unclear". We reply with one working-assumption sentence and
         "Am I on the right track?" and store a pending marker.
Pending: the next message resolves it. Agreement resumes the original
         request; anything else is folded with the assumption into a
         rewritten brief. The marker is always cleared, so there is at
         most one clarifying round-trip per request.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from copydesk.config import settings
from copydesk.services.llm_service import LLMService, GenerationError

logger = logging.getLogger(__name__)

CONFIRM_QUESTION = "Am I on the right track?"

INTENT_VERBS = [
    "write", "draft", "rewrite", "re-write", "fix", "improve", "edit",
    "polish", "tighten", "create", "make", "help", "punch up", "sharpen",
]

CONTEXT_MARKERS = [
    "linkedin", "blog", "article", "newsletter", "email", "e-mail", "bio",
    "website", "web page", "landing page", "homepage", "about page",
    "sales page", "service page", "post", "caption", "headline", "tagline",
    "instagram", "facebook", "twitter", "tiktok", "podcast", "video",
    "script", "case study", "press release", "proposal", "brochure", "faq",
]

AFFIRMATIONS = [
    "yes", "yep", "yeah", "yup", "ya", "y", "correct", "right", "exactly",
    "spot on", "that's it", "thats it", "that's right", "thats right",
    "sounds good", "sounds right", "perfect", "go", "go for it", "go ahead",
    "do it", "ok", "okay", "sure", "absolutely", "bang on", "nailed it",
    "you got it", "all good", "on track", "yes please", "crack on",
]

_URL = re.compile(r"https?://\S+", re.IGNORECASE)
_MODE_LINE = re.compile(r"^\s*MODE:\s*\S", re.IGNORECASE)


def _has_term(text: str, terms) -> bool:
    return any(re.search(rf"\b{re.escape(term)}\b", text) for term in terms)


def is_clear(message: str) -> bool:
    """Clarity heuristic. Thresholds come from settings."""
    text = (message or "").strip()
    if len(text) >= settings.preflight_clear_min_chars:
        return True
    if text.count("\n") >= settings.preflight_clear_min_newlines:
        return True
    if _URL.search(text):
        return True
    if _MODE_LINE.match(text):
        return True

    lowered = text.lower()
    if (
        _has_term(lowered, INTENT_VERBS)
        and not _has_term(lowered, CONTEXT_MARKERS)
        and len(text) < settings.preflight_unclear_max_chars
    ):
        return False
    return True


def is_affirmation(message: str) -> bool:
    cleaned = re.sub(r"[^\w\s']", " ", (message or "").lower())
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned:
        return False
    if cleaned in AFFIRMATIONS:
        return True
    # "yes, go for it" / "yep that's it": every clause is an agreement
    words = cleaned.split(" ")
    if len(words) > 6:
        return False
    for phrase in sorted(AFFIRMATIONS, key=len, reverse=True):
        if cleaned.startswith(phrase + " "):
            rest = cleaned[len(phrase):].strip()
            return rest in AFFIRMATIONS or is_affirmation(rest)
    return False


def template_assumption(message: str, avatar: Optional[Dict[str, Any]] = None) -> str:
    """Working assumption without the model."""
    request = re.sub(r"\s+", " ", (message or "").strip()).rstrip(".?!")
    audience = "your usual audience"
    if avatar:
        summary = avatar.get("summary") or avatar.get("audience") or avatar.get("who")
        if summary:
            audience = str(summary).strip().rstrip(".")
    return (
        f"So I'm getting a piece of copy for \"{request}\", aimed at {audience}, "
        f"to get them to take the next step with you."
    )


def pending_marker(assumption: str, original: str) -> Dict[str, Any]:
    return {
        "active": True,
        "assumption": assumption,
        "original": original,
        "created_at": datetime.utcnow().isoformat(),
    }


def get_pending(preferences: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    pending = (preferences or {}).get("pending")
    if isinstance(pending, dict) and pending.get("active"):
        return pending
    return None


@dataclass
class PreflightResult:
    """
    Outcome of the gate.

    reply set -> short-circuit with this reply.
    message   -> effective message for the rest of the pipeline.
    preferences_patch -> keys to merge into preferences (None removes).
    """
    message: str
    reply: Optional[str] = None
    preferences_patch: Optional[Dict[str, Any]] = None

    @property
    def short_circuit(self) -> bool:
        return self.reply is not None


class Preflight:
    def __init__(self, llm: LLMService):
        self.llm = llm

    async def run(
        self,
        message: str,
        preferences: Optional[Dict[str, Any]],
        avatar: Optional[Dict[str, Any]] = None,
        stop: bool = False,
    ) -> PreflightResult:
        pending = get_pending(preferences)
        if pending:
            return self.resolve(message, pending)

        if stop or not settings.preflight_enabled or is_clear(message):
            return PreflightResult(message=message)

        assumption = await self.paraphrase(message, avatar)
        return PreflightResult(
            message=message,
            reply=f"{assumption}\n\n{CONFIRM_QUESTION}",
            preferences_patch={"pending": pending_marker(assumption, message)},
        )

    def resolve(self, message: str, pending: Dict[str, Any]) -> PreflightResult:
        """
        Both outcomes lead with the original request, so a mode keyword or
        RESEARCH: line at its start still drives the rest of the pipeline.
        """
        assumption = pending.get("assumption", "")
        original = pending.get("original", "")
        clear_patch = {"pending": None}

        if is_affirmation(message):
            effective = f"{original}\n\nConfirmed brief: {assumption}".strip()
            return PreflightResult(message=effective, preferences_patch=clear_patch)

        effective = (
            f"{original}\n\n"
            f"Working brief: {assumption}\n"
            f"Client correction: {message.strip()}\n"
            f"Write to the corrected brief."
        ).strip()
        return PreflightResult(message=effective, preferences_patch=clear_patch)

    async def paraphrase(self, message: str, avatar: Optional[Dict[str, Any]]) -> str:
        """One sentence: "So I'm getting X, aimed at Y, to do Z." Falls back to a template."""
        if not self.llm.is_configured:
            return template_assumption(message, avatar)

        audience = f"\nKnown audience: {avatar}" if avatar else ""
        messages = [
            {
                "role": "system",
                "content": (
                    "Restate the client's copy request as ONE sentence in UK English, "
                    "exactly in the shape: So I'm getting X, aimed at Y, to do Z. "
                    "No em dashes. No preamble. Return only the sentence."
                ),
            },
            {"role": "user", "content": f"Request: {message}{audience}"},
        ]
        try:
            response = await self.llm.complete(messages, max_tokens=120)
        except GenerationError as e:
            logger.warning(f"Preflight paraphrase failed, using template: {e}")
            return template_assumption(message, avatar)

        sentence = (response.content or "").strip().splitlines()
        if not sentence or not sentence[0].strip():
            return template_assumption(message, avatar)
        return sentence[0].strip()
