"""
Advisory chat endpoint.

The reply is streamed as plain text. The first chunk is produced before the
response starts so that retrieval or provider failures still surface as an
HTTP 500; failures after that point end the stream early.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ...agent.types import ChatMessage
from ...services.compliance_service import ComplianceService
from .check import get_compliance_service_dep


logger = logging.getLogger("culturacheck.api.chat")

router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    message: str = Field(default="", description="The user's message")
    history: List[ChatMessage] = Field(default_factory=list, description="Previous turns")


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    service: ComplianceService = Depends(get_compliance_service_dep),
) -> StreamingResponse:
    message = payload.message.strip()
    if not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="message 不能为空")

    replies = service.chat(message, payload.history)
    try:
        first = await replies.__anext__()
    except StopAsyncIteration:
        first = ""
    except Exception as exc:
        logger.error(f"Chat failed: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "对话请求处理失败",
        ) from exc

    async def body() -> AsyncIterator[str]:
        if first:
            yield first
        try:
            async for chunk in replies:
                yield chunk
        except Exception as exc:
            logger.error(f"Chat stream interrupted: {exc}", exc_info=True)

    return StreamingResponse(
        body(),
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
