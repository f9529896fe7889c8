"""
Tests for voice learning: heuristics, the passive threshold and the
/voice endpoints.
"""

import unittest

import pytest
from httpx import AsyncClient

from copydesk.config import settings
from copydesk.db import async_session_maker
from copydesk.db.models import VoiceProfile
from copydesk.main import app
from copydesk.services.account_service import get_voice
from copydesk.services.chat_service import ChatOrchestrator, get_chat_orchestrator
from copydesk.services.llm_service import LLMService
from copydesk.services.prompt_builder import PromptBuilder
from copydesk.services.research_service import ResearchService
from copydesk.services.voice_service import (
    VoiceService, append_with_cap, heuristic_analysis, should_learn_passively, word_count,
)

SAMPLE = (
    "I help small clinics fill their diaries without shouting about discounts. "
    "You don't need another funnel. You need a clear offer, a calm page and a reason to book today. "
    "That's the work I do, and I've done it for twelve years across the UK with practices like yours."
)


class TestHeuristics(unittest.TestCase):

    def test_word_count(self):
        self.assertEqual(word_count("one two, three."), 3)
        self.assertEqual(word_count(""), 0)

    def test_heuristic_analysis(self):
        analysis = heuristic_analysis(SAMPLE)
        self.assertIn("uses contractions", analysis.style_brief)
        self.assertTrue(analysis.style_brief.endswith("."))
        self.assertTrue(analysis.tone_notes)

    def test_exclamations_read_as_energetic(self):
        analysis = heuristic_analysis("Big news! We launched! Come see!")
        self.assertEqual(analysis.tone_notes, "Energetic, exclamatory.")

    def test_append_with_cap_keeps_newest_lines(self):
        existing = "\n".join(f"Sample {i}: " + "x" * 20 for i in range(1, 6))
        combined = append_with_cap(existing, "Sample 6: newest", 80)
        self.assertLessEqual(len(combined), 80)
        self.assertTrue(combined.endswith("Sample 6: newest"))
        self.assertTrue(combined.startswith("Sample "))

    def test_append_with_cap_under_cap(self):
        self.assertEqual(append_with_cap("", "Sample 1: a", 100), "Sample 1: a")


class TestPassiveThreshold(unittest.TestCase):

    def test_long_free_text_is_learned(self):
        self.assertTrue(should_learn_passively(SAMPLE, None))

    def test_short_text_is_skipped(self):
        self.assertFalse(should_learn_passively("Short note", None))

    def test_commands_are_skipped(self):
        self.assertFalse(should_learn_passively("MY PROFILE: " + SAMPLE, None))

    def test_full_profile_is_skipped(self):
        voice = VoiceProfile(account_id="a", sample_count=settings.voice_sample_threshold)
        self.assertFalse(should_learn_passively(SAMPLE, voice))


# ============ Persistence ============

@pytest.mark.asyncio
async def test_learn_creates_then_extends_profile(db_session, account):
    service = VoiceService(LLMService(api_key=""))

    await service.learn(db_session, account.id, SAMPLE)
    voice = await service.learn(db_session, account.id, "Short and sharp. No fluff. Book now.")

    assert voice.sample_count == 2
    assert "Sample 1:" in voice.style_brief
    assert "Sample 2:" in voice.style_brief
    assert voice.last_learned_at is not None


@pytest.mark.asyncio
async def test_reset_removes_profile(db_session, account):
    service = VoiceService(LLMService(api_key=""))
    await service.learn(db_session, account.id, SAMPLE)

    assert await service.reset(db_session, account.id) is True
    assert await service.reset(db_session, account.id) is False


@pytest.mark.asyncio
async def test_chat_message_learns_in_background(client: AsyncClient, account):
    orchestrator = ChatOrchestrator(
        llm=LLMService(api_key=""),
        research=ResearchService(brave_api_key="", fetch_enabled=False),
        prompt_builder=PromptBuilder(),
    )
    app.dependency_overrides[get_chat_orchestrator] = lambda: orchestrator
    spawned = []
    orchestrator._spawn_learning = lambda account_id, text: spawned.append((account_id, text))

    response = await client.post("/chat", json={
        "email": account.email, "token": account.token, "message": SAMPLE,
    })
    short = await client.post("/chat", json={
        "email": account.email, "token": account.token, "message": "Thanks, lovely",
    })

    assert response.status_code == 200
    assert short.status_code == 200
    assert spawned == [(account.id, SAMPLE)]


@pytest.mark.asyncio
async def test_detached_learning_completes_on_drain(database, account):
    orchestrator = ChatOrchestrator(
        llm=LLMService(api_key=""),
        research=ResearchService(brave_api_key="", fetch_enabled=False),
        prompt_builder=PromptBuilder(),
    )

    orchestrator._spawn_learning(account.id, SAMPLE)
    await orchestrator.drain()

    async with async_session_maker() as session:
        voice = await get_voice(session, account.id)
        assert voice is not None
        assert voice.sample_count == 1


# ============ Endpoints ============

@pytest.mark.asyncio
async def test_sample_endpoint(client: AsyncClient, account):
    response = await client.post("/voice/samples", json={
        "email": account.email, "token": account.token, "text": SAMPLE,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["sample_count"] == 1
    assert data["style_brief"].startswith("Sample 1:")

    reset = await client.post("/voice/reset", json={"email": account.email, "token": account.token})
    assert reset.json() == {"reset": True}


@pytest.mark.asyncio
async def test_sample_endpoint_requires_account(client: AsyncClient, account):
    response = await client.post("/voice/samples", json={
        "email": account.email, "token": "wrong", "text": SAMPLE,
    })

    assert response.status_code == 403
