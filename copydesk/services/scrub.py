"""
Output scrub - deterministic cleanup applied to every reply.

- Em dashes become colons
- Runs of spaces collapse to one
- SIN BIN words are removed (whole word, case-insensitive) and the
  spacing/punctuation left behind is tidied

Removal repeats until nothing matches, since taking one word out can
join the parts of a banned phrase. Pure text transform;
scrub_output(scrub_output(x, b), b) == scrub_output(x, b).
"""

import re
from typing import Iterable, Optional

EM_DASH = "—"

_MULTI_SPACE = re.compile(r" {2,}")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([,.:;!?])")
_REPEATED_SEPARATOR = re.compile(r"([,:;])(?:[ \t]*\1)+")
# Exactly two stops; an ellipsis is left alone
_DOUBLE_STOP = re.compile(r"(?<!\.)\.[ \t]*\.(?!\.)")
_LEADING_SEPARATOR = re.compile(r"^[ \t]*[,:;][ \t]*", re.MULTILINE)
_EDGE_SPACES = re.compile(r"^[ \t]+|[ \t]+$", re.MULTILINE)


def banned_pattern(banned: Iterable[str]) -> Optional[re.Pattern]:
    words = [w.strip() for w in banned if w and w.strip()]
    if not words:
        return None
    # Longest first so multi-word phrases win over their parts
    words.sort(key=len, reverse=True)
    alternation = "|".join(re.escape(w) for w in words)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


def _tidy_after_removal(text: str) -> str:
    text = _MULTI_SPACE.sub(" ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _REPEATED_SEPARATOR.sub(r"\1", text)
    text = _DOUBLE_STOP.sub(".", text)
    text = _LEADING_SEPARATOR.sub("", text)
    return _EDGE_SPACES.sub("", text)


def scrub_output(raw: Optional[str], banned: Optional[Iterable[str]] = None) -> str:
    text = str(raw or "").replace(EM_DASH, ":")
    text = _MULTI_SPACE.sub(" ", text)

    pattern = banned_pattern(banned or [])
    if pattern is not None:
        # Every pass is strictly shorter, so this terminates
        while True:
            removed = pattern.sub("", text)
            if removed == text:
                break
            text = _tidy_after_removal(removed)

    return text.strip()
