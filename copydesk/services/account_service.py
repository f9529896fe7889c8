"""Account service - bearer token auth and per-account state access"""

import hmac
import logging
import secrets
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from copydesk.db.models import Account, UserState, VoiceProfile, DEFAULT_SIN_BIN

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def generate_token() -> str:
    """Create an opaque bearer token"""
    return secrets.token_urlsafe(32)


def token_matches(expected: Optional[str], presented: Optional[str]) -> bool:
    """Constant-time token comparison"""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


async def get_account_by_email(db: AsyncSession, email: str) -> Optional[Account]:
    """Get an account by email"""
    result = await db.execute(
        select(Account).where(Account.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_account_by_customer(db: AsyncSession, customer_id: str) -> Optional[Account]:
    """Get an account by Stripe customer id"""
    result = await db.execute(
        select(Account).where(Account.stripe_customer_id == customer_id)
    )
    return result.scalar_one_or_none()


async def authenticate_account(
    db: AsyncSession,
    email: str,
    token: str
) -> Optional[Account]:
    """
    Authenticate by email + bearer token.

    Returns None for unknown accounts, lapsed subscriptions and token
    mismatches. Read-only.
    """
    if not normalize_email(email) or not token:
        return None
    account = await get_account_by_email(db, email)
    if not account:
        return None
    if not account.subscribed:
        return None
    if not token_matches(account.token, token):
        return None
    return account


def new_user_state(account_id: str) -> UserState:
    return UserState(
        account_id=account_id,
        avatar={},
        my_profile="",
        preferences={},
        banned_words=list(DEFAULT_SIN_BIN),
    )


async def get_state(db: AsyncSession, account_id: str) -> Optional[UserState]:
    result = await db.execute(
        select(UserState).where(UserState.account_id == account_id)
    )
    return result.scalar_one_or_none()


async def get_or_create_state(db: AsyncSession, account_id: str) -> UserState:
    """Load the account's UserState, creating it with safe defaults if absent."""
    state = await get_state(db, account_id)
    if state is None:
        state = new_user_state(account_id)
        db.add(state)
        await db.commit()
        logger.info("Created default user state for account %s", account_id)
    return state


async def update_state(db: AsyncSession, state: UserState, **fields: Any) -> UserState:
    """
    Apply a field patch to a UserState and commit.

    JSON values are copied so in-place edits by callers never alias the
    stored value.
    """
    for key, value in fields.items():
        if not hasattr(UserState, key):
            raise ValueError(f"Unknown user state field: {key}")
        if isinstance(value, dict):
            value = dict(value)
        elif isinstance(value, list):
            value = list(value)
        setattr(state, key, value)
    await db.commit()
    return state


async def update_preferences(db: AsyncSession, state: UserState, patch: Dict[str, Any]) -> UserState:
    """Merge keys into preferences; a None value removes the key."""
    prefs = dict(state.preferences or {})
    for key, value in patch.items():
        if value is None:
            prefs.pop(key, None)
        else:
            prefs[key] = value
    return await update_state(db, state, preferences=prefs)


def effective_banned_words(state: Optional[UserState]) -> list:
    """User's SIN BIN, or the default seed when the user has none stored."""
    if state is not None and isinstance(state.banned_words, list):
        return list(state.banned_words)
    return list(DEFAULT_SIN_BIN)


async def get_voice(db: AsyncSession, account_id: str) -> Optional[VoiceProfile]:
    result = await db.execute(
        select(VoiceProfile).where(VoiceProfile.account_id == account_id)
    )
    return result.scalar_one_or_none()
