"""Pydantic schemas for API request/response validation"""

from typing import Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Inbound chat message"""
    email: str = Field(default="", max_length=255, description="Account email")
    token: str = Field(default="", max_length=255, description="Bearer token issued at checkout")
    message: str = Field(default="", max_length=20000, description="Raw chat message")


class ChatReply(BaseModel):
    reply: str


class ErrorResponse(BaseModel):
    error: str


class AccountCredentials(BaseModel):
    email: str = Field(max_length=255)
    token: str = Field(max_length=255)


class VoiceSampleRequest(AccountCredentials):
    text: str = Field(min_length=1, max_length=20000, description="A sample of the client's own writing")


class VoiceProfileResponse(BaseModel):
    style_brief: str
    tone_notes: str
    sample_count: int


class CheckoutRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: Optional[str] = Field(None, max_length=255)


class CheckoutResponse(BaseModel):
    id: str
    url: str


class TokenResponse(BaseModel):
    email: str
    token: str


class WebhookAck(BaseModel):
    received: bool = True
    outcome: Optional[str] = None
