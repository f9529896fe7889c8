"""
Chat orchestration - the per-message pipeline.

authenticate -> log -> load state -> (detached) voice learning ->
command -> preflight -> research + mode -> stop -> assemble ->
generate -> scrub -> log -> respond

Only this module decides the HTTP-visible outcome of a message.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import Callable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.config import settings
from copydesk.db.database import async_session_maker
from copydesk.db.models import Account, TurnRole
from copydesk.services.account_service import (
    authenticate_account, get_or_create_state, get_voice,
    update_preferences, effective_banned_words,
)
from copydesk.services.chat_log import append_turn, recent_turns
from copydesk.services.commands import CommandHandler, CommandKind, parse_command
from copydesk.services.llm_service import LLMService, get_llm_service
from copydesk.services.preflight import Preflight, get_pending
from copydesk.services.prompt_builder import (
    PromptBuilder, PromptInputs, STOP_DIRECTIVE, detect_mode, get_prompt_builder,
)
from copydesk.services.research_service import ResearchService, get_research_service
from copydesk.services.scrub import scrub_output
from copydesk.services.voice_service import VoiceService, should_learn_passively

logger = logging.getLogger(__name__)

NOT_RECOGNISED = (
    "Hey, it appears we do not know you yet. Either check the email you "
    "entered or subscribe for access."
)
FAILURE = (
    "Asteroid strike. The world has ended. If by chance it is actually us, "
    "try again in a moment."
)


@dataclass
class ChatOutcome:
    status_code: int
    reply: Optional[str] = None
    error: Optional[str] = None

    def as_body(self) -> dict:
        if self.error is not None:
            return {"error": self.error}
        return {"reply": self.reply}


class AccountLocks:
    """One asyncio.Lock per account key, dropped once nobody holds a reference."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class ChatOrchestrator:
    def __init__(
        self,
        llm: LLMService,
        research: ResearchService,
        prompt_builder: PromptBuilder,
        session_factory: Callable[[], AsyncSession] = async_session_maker,
        serialize_per_account: Optional[bool] = None,
    ):
        self.llm = llm
        self.research = research
        self.prompt_builder = prompt_builder
        self.preflight = Preflight(llm)
        self.voice = VoiceService(llm)
        self.session_factory = session_factory
        self.serialize = (
            settings.serialize_per_account if serialize_per_account is None else serialize_per_account
        )
        self._locks = AccountLocks()
        self._background: Set[asyncio.Task] = set()

    async def handle(self, email: str, token: str, message: str) -> ChatOutcome:
        message = message or ""
        async with self.session_factory() as db:
            try:
                account = await authenticate_account(db, email, token)
            except Exception:
                logger.exception("Authentication lookup failed")
                return ChatOutcome(status_code=500, error=FAILURE)
            if account is None:
                return ChatOutcome(status_code=403, error=NOT_RECOGNISED)
            email = account.email

            try:
                if self.serialize:
                    async with self._locks.get(account.id):
                        reply = await self._run(db, account, message)
                else:
                    reply = await self._run(db, account, message)
            except Exception:
                logger.exception(f"Chat pipeline failed for {email}")
                return ChatOutcome(status_code=500, error=FAILURE)

        return ChatOutcome(status_code=200, reply=reply)

    async def _run(self, db: AsyncSession, account: Account, message: str) -> str:
        account_id, email, name = account.id, account.email, account.name
        user_turn_id = await self._log(db, account_id, TurnRole.USER, message)

        state = await get_or_create_state(db, account_id)
        voice = await get_voice(db, account_id)

        if should_learn_passively(message, voice):
            self._spawn_learning(account_id, message)

        command = parse_command(message)
        stop = command is not None and command.kind == CommandKind.STOP

        if command is not None and not stop:
            # A command still answers a pending clarifier: drop the marker
            if get_pending(state.preferences):
                await update_preferences(db, state, {"pending": None})
            reply = await CommandHandler(db).execute(state, command)
            await self._log(db, account_id, TurnRole.ASSISTANT, reply)
            return reply

        gate = await self.preflight.run(
            message, state.preferences, avatar=state.avatar, stop=stop
        )
        if gate.preferences_patch:
            await update_preferences(db, state, gate.preferences_patch)
        if gate.short_circuit:
            await self._log(db, account_id, TurnRole.ASSISTANT, gate.reply)
            return gate.reply

        research = await self.research.gather(gate.message)
        effective = research.message
        mode = detect_mode(effective)

        if stop:
            # A brief rewritten by the preflight gate travels with the directive
            folded = gate.message if gate.message.strip().upper() != "STOP" else ""
            effective = f"{STOP_DIRECTIVE}\n\n{folded}".strip()

        history = await recent_turns(
            db,
            account_id,
            limit=self.prompt_builder.max_history,
            before_id=user_turn_id,
            max_chars=self.prompt_builder.max_turn_chars,
        )

        prompt = self.prompt_builder.build(PromptInputs(
            message=effective,
            account_name=name,
            account_email=email,
            avatar=state.avatar or {},
            my_profile=state.my_profile or "",
            preferences=state.preferences or {},
            style_brief=voice.style_brief if voice else "",
            tone_notes=voice.tone_notes if voice else "",
            has_voice_profile=voice is not None,
            research=research.render(self.prompt_builder.max_research_chars),
            mode=mode,
            stop=stop,
            history=history,
        ))

        raw = await self.llm.generate(prompt.system_prompt, prompt.history, prompt.message)
        reply = scrub_output(raw, effective_banned_words(state))

        await self._log(db, account_id, TurnRole.ASSISTANT, reply)
        return reply

    async def _log(self, db: AsyncSession, account_id: str, role: TurnRole, content: str) -> Optional[int]:
        """Best-effort chat log append. Returns the turn id, or None on failure."""
        try:
            turn = await append_turn(db, account_id, role, content)
            return turn.id
        except Exception as e:
            logger.warning(f"Chat log append failed for {account_id}: {e}")
            await db.rollback()
            return None

    # ── Background voice learning ────────────────────────────────────

    def _spawn_learning(self, account_id: str, text: str) -> None:
        task = asyncio.create_task(self._learn(account_id, text))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _learn(self, account_id: str, text: str) -> None:
        try:
            async with self.session_factory() as db:
                await self.voice.learn(db, account_id, text)
        except Exception:
            logger.exception(f"Passive voice learning failed for {account_id}")

    async def drain(self) -> None:
        """Wait for detached learning tasks (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


# Singleton instance
_chat_orchestrator: Optional[ChatOrchestrator] = None


def get_chat_orchestrator() -> ChatOrchestrator:
    global _chat_orchestrator
    if _chat_orchestrator is None:
        _chat_orchestrator = ChatOrchestrator(
            llm=get_llm_service(),
            research=get_research_service(),
            prompt_builder=get_prompt_builder(),
        )
    return _chat_orchestrator
