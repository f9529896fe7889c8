"""
Tests for the command parser, menu rotation and command handlers
"""

import random
import unittest

import pytest

from copydesk.db import async_session_maker
from copydesk.db.models import DEFAULT_SIN_BIN
from copydesk.services.account_service import get_state
from copydesk.services.commands import (
    Command, CommandKind, CommandHandler, HANDLERS, MENU_POOL, MENU_SIZE,
    parse_command, pick_menu, render_menu, parse_avatar,
    add_banned_word, remove_banned_word,
)


class TestParseCommand(unittest.TestCase):

    def test_exact_commands(self):
        self.assertEqual(parse_command("STOP"), Command(CommandKind.STOP))
        self.assertEqual(parse_command("  menu "), Command(CommandKind.MENU))
        self.assertEqual(parse_command("Menu   Again"), Command(CommandKind.MENU_AGAIN))

    def test_free_text_is_not_a_command(self):
        self.assertIsNone(parse_command("Write me a landing page for my bakery"))
        self.assertIsNone(parse_command(""))
        self.assertIsNone(parse_command(None))
        self.assertIsNone(parse_command("stop the presses, I need a headline"))

    def test_avatar_forms(self):
        self.assertEqual(
            parse_command("AVATAR: busy dentists in Leeds"),
            Command(CommandKind.SET_AVATAR, "busy dentists in Leeds"),
        )
        self.assertEqual(
            parse_command("avatar first-time founders"),
            Command(CommandKind.SET_AVATAR, "first-time founders"),
        )

    def test_review_avatar_wins_over_avatar(self):
        self.assertEqual(parse_command("REVIEW AVATAR"), Command(CommandKind.REVIEW_AVATAR))

    def test_add_to_profile_wins_over_profile(self):
        self.assertEqual(
            parse_command("ADD TO MY PROFILE: I run a yoga studio"),
            Command(CommandKind.ADD_PROFILE, "I run a yoga studio"),
        )
        self.assertEqual(
            parse_command("MY PROFILE: Coach for new managers"),
            Command(CommandKind.SET_PROFILE, "Coach for new managers"),
        )

    def test_remove_sin_bin_wins_over_sin_bin(self):
        self.assertEqual(
            parse_command("REMOVE SIN BIN: synergy"),
            Command(CommandKind.SIN_BIN_REMOVE, "synergy"),
        )
        self.assertEqual(
            parse_command("sin bin: synergy"),
            Command(CommandKind.SIN_BIN_ADD, "synergy"),
        )

    def test_empty_payload_is_free_text(self):
        self.assertIsNone(parse_command("SIN BIN:"))
        self.assertIsNone(parse_command("AVATAR:   "))
        self.assertIsNone(parse_command("MY PROFILE"))

    def test_every_kind_except_stop_has_a_handler(self):
        for kind in CommandKind:
            if kind is CommandKind.STOP:
                self.assertNotIn(kind, HANDLERS)
            else:
                self.assertIn(kind, HANDLERS)


class TestMenu(unittest.TestCase):

    def test_pick_menu_returns_distinct_pool_items(self):
        picks, seen = pick_menu([], random.Random(1))
        self.assertEqual(len(picks), MENU_SIZE)
        self.assertEqual(len(set(picks)), MENU_SIZE)
        self.assertTrue(set(picks) <= set(MENU_POOL))
        self.assertEqual(seen, picks)

    def test_consecutive_menus_never_overlap(self):
        rng = random.Random(7)
        seen = []
        previous = None
        for _ in range(12):
            picks, seen = pick_menu(seen, rng)
            if previous is not None:
                self.assertFalse(set(picks) & set(previous))
            previous = picks

    def test_render_menu(self):
        first = render_menu(["A", "B"], again=False)
        again = render_menu(["A", "B"], again=True)
        self.assertIn("- A\n- B", first)
        self.assertTrue(again.startswith("Fresh picks:"))
        self.assertNotEqual(first, again)


class TestHelpers(unittest.TestCase):

    def test_parse_avatar_json_object(self):
        self.assertEqual(parse_avatar('{"who": "dentists"}'), {"who": "dentists"})

    def test_parse_avatar_plain_text(self):
        self.assertEqual(parse_avatar("busy dentists"), {"summary": "busy dentists"})
        self.assertEqual(parse_avatar("[1, 2]"), {"summary": "[1, 2]"})

    def test_banned_word_helpers_are_case_insensitive(self):
        words = add_banned_word(["Synergy"], "synergy")
        self.assertEqual(words, ["Synergy"])
        self.assertEqual(remove_banned_word(["Synergy", "leverage"], "SYNERGY"), ["leverage"])


# ============ Handlers against the database ============

@pytest.mark.asyncio
async def test_sin_bin_add_twice_stores_once(db_session, account):
    state = await get_state(db_session, account.id)
    handler = CommandHandler(db_session)

    reply = await handler.execute(state, Command(CommandKind.SIN_BIN_ADD, "synergy"))
    await handler.execute(state, Command(CommandKind.SIN_BIN_ADD, "Synergy"))

    assert reply == "Added to SIN BIN: synergy"
    async with async_session_maker() as fresh:
        stored = await get_state(fresh, account.id)
        assert [w.lower() for w in stored.banned_words].count("synergy") == 1
        for seed in DEFAULT_SIN_BIN:
            assert seed in stored.banned_words


@pytest.mark.asyncio
async def test_sin_bin_remove(db_session, account):
    state = await get_state(db_session, account.id)
    handler = CommandHandler(db_session)

    reply = await handler.execute(state, Command(CommandKind.SIN_BIN_REMOVE, "fundamentals"))

    assert reply == "Removed from SIN BIN: fundamentals"
    async with async_session_maker() as fresh:
        stored = await get_state(fresh, account.id)
        assert "fundamentals" not in stored.banned_words


@pytest.mark.asyncio
async def test_avatar_set_and_review(db_session, account):
    state = await get_state(db_session, account.id)
    handler = CommandHandler(db_session)

    empty = await handler.execute(state, Command(CommandKind.REVIEW_AVATAR))
    assert empty.startswith("No avatar is set yet")

    await handler.execute(state, Command(CommandKind.SET_AVATAR, "busy dentists"))
    review = await handler.execute(state, Command(CommandKind.REVIEW_AVATAR))

    assert review.startswith("Current avatar profile:")
    assert "busy dentists" in review


@pytest.mark.asyncio
async def test_profile_set_then_add(db_session, account):
    state = await get_state(db_session, account.id)
    handler = CommandHandler(db_session)

    assert await handler.execute(state, Command(CommandKind.SET_PROFILE, "Coach")) == "Profile saved."
    assert await handler.execute(state, Command(CommandKind.ADD_PROFILE, "Based in Leeds")) == "Added to your profile."

    async with async_session_maker() as fresh:
        stored = await get_state(fresh, account.id)
        assert stored.my_profile == "Coach\nBased in Leeds"


@pytest.mark.asyncio
async def test_menu_again_shows_fresh_items(db_session, account):
    state = await get_state(db_session, account.id)
    handler = CommandHandler(db_session, rng=random.Random(3))

    first = await handler.execute(state, Command(CommandKind.MENU))
    again = await handler.execute(state, Command(CommandKind.MENU_AGAIN))

    first_items = {line for line in first.splitlines() if line.startswith("- ")}
    again_items = {line for line in again.splitlines() if line.startswith("- ")}
    assert len(first_items) == MENU_SIZE
    assert len(again_items) == MENU_SIZE
    assert not first_items & again_items

    async with async_session_maker() as fresh:
        stored = await get_state(fresh, account.id)
        assert len(stored.preferences["menu_seen"]) == 2 * MENU_SIZE
