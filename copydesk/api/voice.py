"""
Voice profile endpoints.

POST /voice/samples  - learn from an explicit writing sample
POST /voice/reset    - forget the learned voice
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.db import get_db
from copydesk.db.models import Account
from copydesk.schemas import AccountCredentials, VoiceSampleRequest, VoiceProfileResponse
from copydesk.services.account_service import authenticate_account
from copydesk.services.voice_service import VoiceService, get_voice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voice", tags=["voice"])


async def _require_account(db: AsyncSession, email: str, token: str) -> Account:
    account = await authenticate_account(db, email, token)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not recognised",
        )
    return account


@router.post("/samples", response_model=VoiceProfileResponse)
async def submit_sample(
    body: VoiceSampleRequest,
    db: AsyncSession = Depends(get_db),
    voice_service: VoiceService = Depends(get_voice_service),
):
    """Fold a writing sample into the voice profile (ignores the passive cap)."""
    account = await _require_account(db, body.email, body.token)
    voice = await voice_service.learn(db, account.id, body.text)
    return VoiceProfileResponse(
        style_brief=voice.style_brief,
        tone_notes=voice.tone_notes,
        sample_count=voice.sample_count,
    )


@router.post("/reset")
async def reset_voice(
    body: AccountCredentials,
    db: AsyncSession = Depends(get_db),
    voice_service: VoiceService = Depends(get_voice_service),
):
    """Delete the learned voice profile."""
    account = await _require_account(db, body.email, body.token)
    removed = await voice_service.reset(db, account.id)
    return {"reset": removed}
