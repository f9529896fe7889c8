"""Conversation log - append-only turns per account"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from copydesk.db.models import ChatTurn, TurnRole


@dataclass
class HistoryTurn:
    role: str
    content: str

    def as_message(self) -> dict:
        return {"role": self.role, "content": self.content}


async def append_turn(
    db: AsyncSession,
    account_id: str,
    role: TurnRole,
    content: str
) -> ChatTurn:
    """Insert one turn and commit. Returns the stored row (with id)."""
    turn = ChatTurn(account_id=account_id, role=role.value, content=content or "")
    db.add(turn)
    await db.commit()
    return turn


async def recent_turns(
    db: AsyncSession,
    account_id: str,
    limit: int,
    before_id: Optional[int] = None,
    max_chars: Optional[int] = None,
) -> List[HistoryTurn]:
    """
    Most recent `limit` turns for an account, oldest first.

    `before_id` excludes the current message (and anything after it) when
    it has already been logged.
    """
    if limit <= 0:
        return []

    conditions = [ChatTurn.account_id == account_id]
    if before_id is not None:
        conditions.append(ChatTurn.id < before_id)

    query = (
        select(ChatTurn)
        .where(and_(*conditions))
        .order_by(ChatTurn.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    rows = list(result.scalars().all())
    rows.reverse()

    turns = []
    for row in rows:
        content = row.content or ""
        if max_chars and len(content) > max_chars:
            content = content[:max_chars]
        turns.append(HistoryTurn(role=row.role, content=content))
    return turns
