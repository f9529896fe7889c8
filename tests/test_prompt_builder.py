"""
Tests for mode detection and prompt assembly
"""

import unittest

from copydesk.services.chat_log import HistoryTurn
from copydesk.services.prompt_builder import (
    PromptBuilder, PromptInputs, STOP_DIRECTIVE, detect_mode, find_guardrail,
)
from copydesk.services.style_rules import STYLE_RULES


class TestDetectMode(unittest.TestCase):

    def test_leading_token(self):
        self.assertEqual(detect_mode("REWRITE this paragraph: we sell shoes"), "REWRITE")
        self.assertEqual(detect_mode("draft a welcome email"), "DRAFT")

    def test_two_word_mode_beats_its_suffix(self):
        self.assertEqual(detect_mode("Light edit please: our about page"), "LIGHT EDIT")

    def test_mode_line(self):
        self.assertEqual(detect_mode("MODE: OUTLINE\nsteps to onboard a client"), "OUTLINE")
        self.assertEqual(detect_mode("mode: assess\nhere is my page"), "ASSESS")

    def test_how_to_maps_to_outline(self):
        self.assertEqual(detect_mode("HOW-TO brew cold coffee"), "OUTLINE")

    def test_no_mode(self):
        self.assertIsNone(detect_mode("Can you help with my homepage?"))
        self.assertIsNone(detect_mode("Editorial calendar ideas"))
        self.assertIsNone(detect_mode(""))
        self.assertIsNone(detect_mode(None))


class TestGuardrail(unittest.TestCase):

    def test_business_purpose_trigger(self):
        text = find_guardrail({"business_purpose": "Lead_Generation"})
        self.assertIn("LEAD GENERATION", text)

    def test_stance_trigger(self):
        self.assertIn("CONTRARIAN", find_guardrail({"stance": "contrarian"}))

    def test_no_trigger(self):
        self.assertIsNone(find_guardrail({"business_purpose": "fun"}))
        self.assertIsNone(find_guardrail(None))


class TestPromptBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = PromptBuilder(max_history=4, max_research_chars=50, max_turn_chars=10)

    def test_minimal_prompt_is_rules_and_account(self):
        prompt = self.builder.build(PromptInputs(
            message="hello", account_name="Ana", account_email="ana@example.com",
        ))
        self.assertEqual(prompt.block_names(), ["rules", "account"])
        self.assertEqual(prompt.get("rules").text, STYLE_RULES)
        self.assertEqual(prompt.get("account").text, "ACCOUNT: Ana <ana@example.com>")
        self.assertEqual(prompt.message, "hello")

    def test_full_block_order(self):
        prompt = self.builder.build(PromptInputs(
            message=f"{STOP_DIRECTIVE}\n\nMODE: OUTLINE",
            avatar={"summary": "dentists"},
            preferences={"business_purpose": "authority"},
            style_brief="Short lines.",
            has_voice_profile=True,
            research="SOURCE: https://example.com\nsome text",
            mode="OUTLINE",
            stop=True,
        ))
        self.assertEqual(
            prompt.block_names(),
            ["rules", "voice", "guardrail", "research", "mode", "no_sales", "stop", "account"],
        )

    def test_voice_block_contents(self):
        prompt = self.builder.build(PromptInputs(
            message="hi",
            avatar={"summary": "busy dentists"},
            my_profile="Dental marketing consultant",
            preferences={"tone": "warm", "pending": {"active": True}, "industry_terms": ["recall", "hygienist"]},
            style_brief="Short lines. Plain words.",
            tone_notes="warm, direct",
            has_voice_profile=True,
        ))
        voice = prompt.get("voice").text
        self.assertTrue(voice.startswith("CLIENT VOICE BRIEF"))
        self.assertIn("Short lines. Plain words.", voice)
        self.assertIn("busy dentists", voice)
        self.assertIn("Dental marketing consultant", voice)
        self.assertIn("Industry terms: recall, hygienist", voice)
        self.assertIn("- tone: warm", voice)
        self.assertNotIn("pending", voice)

    def test_research_is_bounded(self):
        prompt = self.builder.build(PromptInputs(message="hi", research="x" * 500))
        research = prompt.get("research").text
        self.assertEqual(research.count("x"), 50)

    def test_mode_without_no_sales(self):
        prompt = self.builder.build(PromptInputs(message="hi", mode="REWRITE"))
        self.assertIsNotNone(prompt.get("mode"))
        self.assertIsNone(prompt.get("no_sales"))

    def test_history_bounded_and_capped(self):
        history = [HistoryTurn(role="user", content=f"turn {i} " + "y" * 20) for i in range(10)]
        prompt = self.builder.build(PromptInputs(message="now", history=history))
        self.assertEqual(len(prompt.history), 4)
        self.assertEqual(prompt.history[0].content, "turn 6 yyy")
        self.assertTrue(all(len(t.content) <= 10 for t in prompt.history))

    def test_deterministic(self):
        inputs = PromptInputs(message="hi", avatar={"summary": "x"}, mode="DRAFT")
        self.assertEqual(
            self.builder.build(inputs).system_prompt,
            self.builder.build(inputs).system_prompt,
        )


if __name__ == "__main__":
    unittest.main()
