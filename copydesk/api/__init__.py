from copydesk.api.chat import router as chat_router
from copydesk.api.webhooks import router as billing_router
from copydesk.api.voice import router as voice_router
from copydesk.api.health import router as health_router

__all__ = [
    "chat_router",
    "billing_router",
    "voice_router",
    "health_router",
]
