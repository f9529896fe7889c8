"""
Voice learning service - builds a client's voice profile from their own writing.

Passive learning runs on ordinary chat messages until the profile has
`voice_sample_threshold` samples. Explicit samples (the /voice API) are
always learned. With an OpenAI key the model summarises the sample;
without one a heuristic reading of the text is stored instead.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.config import settings
from copydesk.db.models import VoiceProfile
from copydesk.services.account_service import get_voice
from copydesk.services.commands import parse_command
from copydesk.services.llm_service import LLMService, GenerationError, get_llm_service

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_CONTRACTION = re.compile(r"\b\w+'(?:s|re|ve|ll|d|t|m)\b", re.IGNORECASE)
_UK_SPELLINGS = re.compile(r"\b\w+(?:ise|ised|ising|isation|our|ours|yse|ysed)\b", re.IGNORECASE)


@dataclass
class VoiceAnalysis:
    style_brief: str
    tone_notes: str


def word_count(text: str) -> int:
    return len(re.findall(r"\b\w+\b", text or ""))


def should_learn_passively(message: str, voice: Optional[VoiceProfile]) -> bool:
    """Long-enough free text from an account still under the sample threshold."""
    if not settings.voice_learning_enabled:
        return False
    if voice is not None and (voice.sample_count or 0) >= settings.voice_sample_threshold:
        return False
    if parse_command(message) is not None:
        return False
    return word_count(message) >= settings.voice_min_sample_words


def heuristic_analysis(text: str) -> VoiceAnalysis:
    """Rough read of sentence length, contractions, person and spelling."""
    normalized = (text or "").replace("’", "'").strip()
    sentences = [s for s in _SENTENCE_SPLIT.split(normalized) if s.strip()]
    words = word_count(normalized)
    avg = round(words / max(len(sentences), 1))

    traits = []
    if avg <= 12:
        traits.append(f"short sentences (about {avg} words)")
    elif avg <= 22:
        traits.append(f"mid-length sentences (about {avg} words)")
    else:
        traits.append(f"long sentences (about {avg} words)")

    if _CONTRACTION.search(normalized):
        traits.append("uses contractions")
    else:
        traits.append("avoids contractions")

    lowered = f" {normalized.lower()} "
    first_person = len(re.findall(r"\b(i|i'm|i've|my|me)\b", lowered))
    second_person = len(re.findall(r"\b(you|your|you're)\b", lowered))
    if second_person > first_person:
        traits.append("talks to the reader as 'you'")
    elif first_person:
        traits.append("writes in first person")

    questions = normalized.count("?")
    if questions:
        traits.append(f"asks questions ({questions})")
    if _UK_SPELLINGS.search(normalized):
        traits.append("UK spellings")

    exclaims = normalized.count("!")
    if exclaims >= 2:
        tone = "Energetic, exclamatory."
    elif questions >= 2:
        tone = "Conversational, curious."
    elif avg <= 12:
        tone = "Direct, punchy."
    else:
        tone = "Measured, explanatory."

    return VoiceAnalysis(style_brief="; ".join(traits) + ".", tone_notes=tone)


def append_with_cap(existing: str, addition: str, cap: int) -> str:
    """Append a line; when over cap keep the newest text, trimmed at a line boundary."""
    combined = f"{existing or ''}\n{addition}".strip()
    if len(combined) <= cap:
        return combined
    tail = combined[-cap:]
    newline = tail.find("\n")
    if 0 <= newline < len(tail) - 1:
        tail = tail[newline + 1:]
    return tail.strip()


class VoiceService:
    def __init__(self, llm: LLMService):
        self.llm = llm

    async def analyse(self, text: str) -> VoiceAnalysis:
        if not self.llm.is_configured:
            return heuristic_analysis(text)

        messages = [
            {
                "role": "system",
                "content": (
                    "You analyse a client's own writing so a copywriter can echo their voice. "
                    "Return JSON with keys style_brief (one or two sentences on cadence, "
                    "word choice and structure) and tone_notes (a few words). UK English."
                ),
            },
            {"role": "user", "content": text[:6000]},
        ]
        try:
            data = await self.llm.complete_json(messages, max_tokens=300)
        except GenerationError as e:
            logger.warning(f"Voice analysis via model failed, using heuristics: {e}")
            return heuristic_analysis(text)

        style = str(data.get("style_brief") or "").strip()
        tone = str(data.get("tone_notes") or "").strip()
        if not style:
            return heuristic_analysis(text)
        return VoiceAnalysis(style_brief=style, tone_notes=tone)

    async def learn(self, db: AsyncSession, account_id: str, text: str) -> VoiceProfile:
        """Fold one writing sample into the account's voice profile and commit."""
        analysis = await self.analyse(text)

        voice = await get_voice(db, account_id)
        if voice is None:
            voice = VoiceProfile(account_id=account_id, style_brief="", tone_notes="", sample_count=0)
            db.add(voice)

        count = (voice.sample_count or 0) + 1
        voice.style_brief = append_with_cap(
            voice.style_brief,
            f"Sample {count}: {analysis.style_brief}",
            settings.voice_style_brief_max_chars,
        )
        if analysis.tone_notes:
            voice.tone_notes = analysis.tone_notes
        voice.sample_count = count
        voice.last_learned_at = datetime.utcnow()
        await db.commit()

        logger.info(f"Voice profile updated for {account_id} (samples: {count})")
        return voice

    async def reset(self, db: AsyncSession, account_id: str) -> bool:
        voice = await get_voice(db, account_id)
        if voice is None:
            return False
        await db.delete(voice)
        await db.commit()
        return True


# Singleton instance
_voice_service: Optional[VoiceService] = None


def get_voice_service() -> VoiceService:
    global _voice_service
    if _voice_service is None:
        _voice_service = VoiceService(get_llm_service())
    return _voice_service
