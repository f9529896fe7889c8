"""
Command parser and handlers.

A small fixed set of directives typed straight into chat. Each one
mutates or shows per-account state and answers without a model call.
STOP is parsed here but handled by the orchestrator (it changes how the
reply is drafted, it does not short-circuit).
"""

import json
import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.db.models import UserState
from copydesk.services.account_service import (
    update_state, update_preferences, effective_banned_words
)

logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    STOP = "stop"
    MENU = "menu"
    MENU_AGAIN = "menu_again"
    REVIEW_AVATAR = "review_avatar"
    SET_AVATAR = "set_avatar"
    SET_PROFILE = "set_profile"
    ADD_PROFILE = "add_profile"
    SIN_BIN_ADD = "sin_bin_add"
    SIN_BIN_REMOVE = "sin_bin_remove"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    payload: str = ""


_EXACT = {
    "STOP": CommandKind.STOP,
    "MENU": CommandKind.MENU,
    "MENU AGAIN": CommandKind.MENU_AGAIN,
}

# Order matters: a prefix must come before any shorter prefix it contains.
_PREFIXES = [
    (re.compile(r"^REVIEW\s+AVATAR\b", re.IGNORECASE), CommandKind.REVIEW_AVATAR),
    (re.compile(r"^ADD\s+TO\s+MY\s+PROFILE\b:?", re.IGNORECASE), CommandKind.ADD_PROFILE),
    (re.compile(r"^MY\s+PROFILE\b:?", re.IGNORECASE), CommandKind.SET_PROFILE),
    (re.compile(r"^REMOVE\s+SIN\s+BIN:", re.IGNORECASE), CommandKind.SIN_BIN_REMOVE),
    (re.compile(r"^SIN\s+BIN:", re.IGNORECASE), CommandKind.SIN_BIN_ADD),
    (re.compile(r"^AVATAR\b:?", re.IGNORECASE), CommandKind.SET_AVATAR),
]

# Kinds that need a payload to mean anything
_NEEDS_PAYLOAD = {
    CommandKind.SET_AVATAR,
    CommandKind.SET_PROFILE,
    CommandKind.ADD_PROFILE,
    CommandKind.SIN_BIN_ADD,
    CommandKind.SIN_BIN_REMOVE,
}


def parse_command(text: Optional[str]) -> Optional[Command]:
    """Return the Command embedded in a raw message, or None for free text."""
    message = (text or "").strip()
    if not message:
        return None

    exact = _EXACT.get(re.sub(r"\s+", " ", message).upper())
    if exact is not None:
        return Command(exact)

    for pattern, kind in _PREFIXES:
        match = pattern.match(message)
        if not match:
            continue
        payload = message[match.end():].strip()
        if kind in _NEEDS_PAYLOAD and not payload:
            return None
        return Command(kind, payload)

    return None


# ── Menu ─────────────────────────────────────────────────────────────

MENU_SIZE = 5

MENU_POOL = [
    "Website about page tune up",
    "LinkedIn profile rewrite for clarity",
    "Service page sharpen for conversions",
    "Landing page quick audit",
    "Headline and CTA set",
    "Bio rewrite for trust",
    "Short email nurture outline",
    "Offer page structure",
    "FAQ block in your voice",
    "Social post variants (3 to 5)",
    "Case study from a client win",
    "Newsletter opener that earns the scroll",
    "Sales email follow-up sequence",
    "Homepage hero rewrite",
    "Testimonial request message",
]


def pick_menu(seen: List[str], rng: Optional[random.Random] = None) -> tuple:
    """
    Pick MENU_SIZE suggestions not in `seen`.

    Returns (picks, new_seen). When the unseen pool is too small the
    session starts over, still avoiding the last set shown.
    """
    rng = rng or random
    fresh = [item for item in MENU_POOL if item not in seen]
    if len(fresh) < MENU_SIZE:
        last_shown = seen[-MENU_SIZE:]
        fresh = [item for item in MENU_POOL if item not in last_shown]
        seen = []
    picks = rng.sample(fresh, MENU_SIZE)
    return picks, list(seen) + picks


def render_menu(picks: List[str], again: bool) -> str:
    lines = "\n".join(f"- {item}" for item in picks)
    if again:
        return f"Fresh picks:\n{lines}\nWant one of these, or something else?"
    return f"Here are a few things we could roll with.\n{lines}\nPick one, or throw me your own."


# ── Handlers ─────────────────────────────────────────────────────────

def parse_avatar(payload: str) -> dict:
    """JSON object payloads are stored as-is; anything else becomes a summary."""
    try:
        value = json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        return {"summary": payload}
    if isinstance(value, dict):
        return value
    return {"summary": payload}


def add_banned_word(words: List[str], word: str) -> List[str]:
    if any(w.lower() == word.lower() for w in words):
        return list(words)
    return list(words) + [word]


def remove_banned_word(words: List[str], word: str) -> List[str]:
    return [w for w in words if w.lower() != word.lower()]


Handler = Callable[["CommandHandler", UserState, Command], Awaitable[str]]


class CommandHandler:
    """Executes parsed commands against one account's UserState."""

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng

    async def execute(self, state: UserState, command: Command) -> str:
        handler = HANDLERS.get(command.kind)
        if handler is None:
            raise ValueError(f"No handler for command {command.kind.value}")
        return await handler(self, state, command)

    async def _menu(self, state: UserState, command: Command) -> str:
        seen = list((state.preferences or {}).get("menu_seen", []))
        picks, seen = pick_menu(seen, self.rng)
        await update_preferences(self.db, state, {"menu_seen": seen})
        return render_menu(picks, again=command.kind == CommandKind.MENU_AGAIN)

    async def _review_avatar(self, state: UserState, command: Command) -> str:
        avatar = state.avatar or {}
        if not avatar:
            return "No avatar is set yet. Tell me who you serve in plain terms and I will store it."
        clean = json.dumps(avatar, indent=2, ensure_ascii=False)
        return f"Current avatar profile:\n{clean}\nAnything you want to tweak?"

    async def _set_avatar(self, state: UserState, command: Command) -> str:
        await update_state(self.db, state, avatar=parse_avatar(command.payload))
        return "Avatar noted. I will write to this audience unless you change it."

    async def _set_profile(self, state: UserState, command: Command) -> str:
        await update_state(self.db, state, my_profile=command.payload)
        return "Profile saved."

    async def _add_profile(self, state: UserState, command: Command) -> str:
        combined = f"{state.my_profile or ''}\n{command.payload}".strip()
        await update_state(self.db, state, my_profile=combined)
        return "Added to your profile."

    async def _sin_bin_add(self, state: UserState, command: Command) -> str:
        words = add_banned_word(effective_banned_words(state), command.payload)
        await update_state(self.db, state, banned_words=words)
        return f"Added to SIN BIN: {command.payload}"

    async def _sin_bin_remove(self, state: UserState, command: Command) -> str:
        words = remove_banned_word(effective_banned_words(state), command.payload)
        await update_state(self.db, state, banned_words=words)
        return f"Removed from SIN BIN: {command.payload}"


HANDLERS: Dict[CommandKind, Handler] = {
    CommandKind.MENU: CommandHandler._menu,
    CommandKind.MENU_AGAIN: CommandHandler._menu,
    CommandKind.REVIEW_AVATAR: CommandHandler._review_avatar,
    CommandKind.SET_AVATAR: CommandHandler._set_avatar,
    CommandKind.SET_PROFILE: CommandHandler._set_profile,
    CommandKind.ADD_PROFILE: CommandHandler._add_profile,
    CommandKind.SIN_BIN_ADD: CommandHandler._sin_bin_add,
    CommandKind.SIN_BIN_REMOVE: CommandHandler._sin_bin_remove,
}
