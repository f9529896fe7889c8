"""
Prompt Builder Service - assembles the instruction blocks for one reply

The system prompt is constructed in ordered layers (later blocks win
when they conflict with earlier ones):
1. Rules - house persona and formatting rules
2. Voice - the client's learned voice brief and stored state
3. Guardrail - structural block for a declared business purpose/stance
4. Research - fetched/searched material
5. Mode - the recognised structural mode
6. No-sales - outline/how-to pieces carry no pitch
7. Stop - STOP protocol for this turn
8. Account - who we are writing for
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from copydesk.config import settings
from copydesk.services.chat_log import HistoryTurn
from copydesk.services.style_rules import STYLE_RULES

logger = logging.getLogger(__name__)

MODES = [
    "LIGHT EDIT",
    "EDIT",
    "REWRITE",
    "REBUILD",
    "ASSESS",
    "ANALYSE",
    "DRAFT",
    "OUTLINE",
    "PROMPT",
    "HOW-TO",
    "LONGFORM",
]

MODE_ALIASES = {"HOW-TO": "OUTLINE"}

NO_SALES_MODES = {"OUTLINE"}

STOP_DIRECTIVE = "Draft now using current context. No clarifiers."

# Preference keys that are internal bookkeeping, never shown to the model
INTERNAL_PREFERENCE_KEYS = {"pending", "menu_seen", "industry_terms", "business_purpose", "stance"}

# (annotation key, value) -> guardrail text
GUARDRAIL_TRIGGERS = {
    ("business_purpose", "lead generation"): (
        "STRUCTURAL GUARDRAIL: LEAD GENERATION\n"
        "- Keep the Problem, Fix, Proof, CTA spine visible in the order of ideas.\n"
        "- One CTA only, placed last, phrased as a low-friction next step.\n"
        "- Proof must be specific: a number, a name, or a before and after."
    ),
    ("business_purpose", "authority"): (
        "STRUCTURAL GUARDRAIL: AUTHORITY\n"
        "- Lead with a clear point of view in the first two lines.\n"
        "- Teach one idea well. No pitch, no CTA beyond an invitation to reply.\n"
        "- Back the claim with one concrete example from the client's world."
    ),
    ("business_purpose", "launch"): (
        "STRUCTURAL GUARDRAIL: LAUNCH\n"
        "- Open with what is new and who it is for.\n"
        "- State the offer, the date, and the single action plainly.\n"
        "- No teasing without a payoff in the same piece."
    ),
    ("stance", "contrarian"): (
        "STRUCTURAL GUARDRAIL: CONTRARIAN STANCE\n"
        "- Name the common belief, then the client's disagreement, in that order.\n"
        "- Argue the position without hedging and without mocking the reader.\n"
        "- Close with the practical consequence of the client's view."
    ),
}


def _normalize_annotation(value: Any) -> str:
    return re.sub(r"[\s_\-]+", " ", str(value or "")).strip().lower()


def detect_mode(message: Optional[str]) -> Optional[str]:
    """
    Structural mode named at the start of a message, or None.

    Checks the first one or two tokens and a leading "MODE: <NAME>" line.
    """
    text = (message or "").strip()
    upper = text.upper()
    head = " ".join(upper.split()[:2])
    first_line = upper.split("\n", 1)[0].strip()
    explicit = None
    match = re.match(r"^MODE:\s*(.+)$", first_line)
    if match:
        explicit = " ".join(match.group(1).split())

    for mode in MODES:
        if _starts_with_word(head, mode) or (explicit and _starts_with_word(explicit, mode)):
            return MODE_ALIASES.get(mode, mode)
    return None


def _starts_with_word(text: str, word: str) -> bool:
    if not text.startswith(word):
        return False
    rest = text[len(word):]
    return not rest or not (rest[0].isalnum() or rest[0] == "-")


def find_guardrail(preferences: Optional[Dict[str, Any]]) -> Optional[str]:
    prefs = preferences or {}
    for (key, value), text in GUARDRAIL_TRIGGERS.items():
        if _normalize_annotation(prefs.get(key)) == value:
            return text
    return None


@dataclass
class PromptBlock:
    name: str
    text: str


@dataclass
class PromptInputs:
    """Everything the assembler needs for one reply"""
    message: str
    account_name: Optional[str] = None
    account_email: Optional[str] = None
    avatar: Dict[str, Any] = field(default_factory=dict)
    my_profile: str = ""
    preferences: Dict[str, Any] = field(default_factory=dict)
    style_brief: str = ""
    tone_notes: str = ""
    has_voice_profile: bool = False
    research: str = ""
    mode: Optional[str] = None
    stop: bool = False
    history: List[HistoryTurn] = field(default_factory=list)


@dataclass
class AssembledPrompt:
    blocks: List[PromptBlock]
    history: List[HistoryTurn]
    message: str

    @property
    def system_prompt(self) -> str:
        return "\n\n".join(block.text for block in self.blocks)

    def block_names(self) -> List[str]:
        return [block.name for block in self.blocks]

    def get(self, name: str) -> Optional[PromptBlock]:
        for block in self.blocks:
            if block.name == name:
                return block
        return None


class PromptBuilder:
    """Builds the ordered instruction blocks. Deterministic for equal inputs."""

    def __init__(
        self,
        rules: str = STYLE_RULES,
        max_history: Optional[int] = None,
        max_research_chars: Optional[int] = None,
        max_turn_chars: Optional[int] = None,
    ):
        self.rules = rules
        self.max_history = settings.max_history_messages if max_history is None else max_history
        self.max_research_chars = max_research_chars or settings.research_max_chars
        self.max_turn_chars = max_turn_chars or settings.history_turn_max_chars

    def build(self, inputs: PromptInputs) -> AssembledPrompt:
        blocks = [PromptBlock("rules", self.rules)]

        voice = self._voice_block(inputs)
        if voice:
            blocks.append(PromptBlock("voice", voice))

        guardrail = find_guardrail(inputs.preferences)
        if guardrail:
            blocks.append(PromptBlock("guardrail", guardrail))

        research = (inputs.research or "").strip()
        if research:
            research = research[: self.max_research_chars]
            blocks.append(PromptBlock(
                "research",
                "RESEARCH MATERIAL (prefer this over guessing; reference it when relevant)\n"
                f"{research}"
            ))

        if inputs.mode:
            blocks.append(PromptBlock(
                "mode",
                f"MODE: {inputs.mode}\nFollow the expected shape for {inputs.mode}. "
                "Do not pitch unless asked."
            ))

        if inputs.mode in NO_SALES_MODES:
            blocks.append(PromptBlock(
                "no_sales",
                "NO-SALES: This is an outline or how-to. No calls to action, no offers, "
                "no pitch unless the client explicitly asks for one."
            ))

        if inputs.stop:
            blocks.append(PromptBlock(
                "stop",
                "STOP PROTOCOL: The client typed STOP. Draft immediately with the context you have. "
                "After the draft, offer exactly one optional improvement question."
            ))

        blocks.append(PromptBlock("account", self._account_line(inputs)))

        return AssembledPrompt(
            blocks=blocks,
            history=self._bound_history(inputs.history),
            message=inputs.message,
        )

    def _voice_block(self, inputs: PromptInputs) -> str:
        prefs = {
            k: v for k, v in (inputs.preferences or {}).items()
            if k not in INTERNAL_PREFERENCE_KEYS and v not in (None, "", [], {})
        }
        industry_terms = (inputs.preferences or {}).get("industry_terms")
        has_state = bool(inputs.avatar or (inputs.my_profile or "").strip() or prefs or industry_terms)
        if not (inputs.has_voice_profile or has_state):
            return ""

        lines = ["CLIENT VOICE BRIEF"]
        if (inputs.style_brief or "").strip():
            lines.append(f"Style brief:\n{inputs.style_brief.strip()}")
        if (inputs.tone_notes or "").strip():
            lines.append(f"Tone notes: {inputs.tone_notes.strip()}")
        if industry_terms:
            if isinstance(industry_terms, (list, tuple)):
                industry_terms = ", ".join(str(t) for t in industry_terms)
            lines.append(f"Industry terms: {industry_terms}")
        if inputs.avatar:
            lines.append(
                "Audience (AVATAR):\n" + json.dumps(inputs.avatar, indent=2, ensure_ascii=False)
            )
        if (inputs.my_profile or "").strip():
            lines.append(f"About the client (MY PROFILE):\n{inputs.my_profile.strip()}")
        if prefs:
            lines.append("Preferences:\n" + "\n".join(f"- {k}: {v}" for k, v in sorted(prefs.items())))
        return "\n".join(lines)

    @staticmethod
    def _account_line(inputs: PromptInputs) -> str:
        name = (inputs.account_name or "").strip() or "Unknown"
        email = (inputs.account_email or "").strip() or "unknown"
        return f"ACCOUNT: {name} <{email}>"

    def _bound_history(self, history: Sequence[HistoryTurn]) -> List[HistoryTurn]:
        if self.max_history <= 0:
            return []
        recent = list(history)[-self.max_history:]
        return [
            HistoryTurn(role=t.role, content=(t.content or "")[: self.max_turn_chars])
            for t in recent
        ]


# Singleton instance
_prompt_builder: Optional[PromptBuilder] = None


def get_prompt_builder() -> PromptBuilder:
    """Get the prompt builder singleton."""
    global _prompt_builder
    if _prompt_builder is None:
        _prompt_builder = PromptBuilder()
    return _prompt_builder
