from copydesk.services.account_service import (
    authenticate_account, generate_token, get_account_by_email,
    get_or_create_state, update_state, update_preferences, get_voice,
)
from copydesk.services.chat_log import append_turn, recent_turns, HistoryTurn
from copydesk.services.commands import Command, CommandKind, CommandHandler, parse_command
from copydesk.services.llm_service import LLMService, GenerationError, get_llm_service
from copydesk.services.preflight import Preflight, PreflightResult
from copydesk.services.prompt_builder import PromptBuilder, AssembledPrompt, detect_mode, get_prompt_builder
from copydesk.services.research_service import ResearchService, get_research_service
from copydesk.services.scrub import scrub_output
from copydesk.services.voice_service import VoiceService, get_voice_service
from copydesk.services.chat_service import ChatOrchestrator, ChatOutcome, get_chat_orchestrator

__all__ = [
    "authenticate_account",
    "generate_token",
    "get_account_by_email",
    "get_or_create_state",
    "update_state",
    "update_preferences",
    "get_voice",
    "append_turn",
    "recent_turns",
    "HistoryTurn",
    "Command",
    "CommandKind",
    "CommandHandler",
    "parse_command",
    "LLMService",
    "GenerationError",
    "get_llm_service",
    "Preflight",
    "PreflightResult",
    "PromptBuilder",
    "AssembledPrompt",
    "detect_mode",
    "get_prompt_builder",
    "ResearchService",
    "get_research_service",
    "scrub_output",
    "VoiceService",
    "get_voice_service",
    "ChatOrchestrator",
    "ChatOutcome",
    "get_chat_orchestrator",
]
