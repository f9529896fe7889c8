from copydesk.db.models import (
    Base, Account, UserState, VoiceProfile, ChatTurn, TurnRole, ProcessedEvent,
    DEFAULT_SIN_BIN,
)
from copydesk.db.database import get_db, init_db, drop_db, ping_db, async_session_maker, engine

__all__ = [
    "Base",
    "Account",
    "UserState",
    "VoiceProfile",
    "ChatTurn",
    "TurnRole",
    "ProcessedEvent",
    "DEFAULT_SIN_BIN",
    # Database
    "get_db",
    "init_db",
    "drop_db",
    "ping_db",
    "async_session_maker",
    "engine",
]
