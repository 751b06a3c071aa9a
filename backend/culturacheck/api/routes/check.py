from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ...core.config import Settings
from ...services.compliance_service import ComplianceService


logger = logging.getLogger("culturacheck.api.check")

router = APIRouter(prefix="/api", tags=["check"])


class CheckRequest(BaseModel):
    text: Any = None
    targetCountry: Optional[str] = None
    contentType: Optional[str] = None


def get_compliance_service_dep(request: Request) -> ComplianceService:
    return request.app.state.compliance_service


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def _validated_text(text: Any, max_length: int) -> str:
    if not isinstance(text, str):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="缺少 text 或格式错误")
    trimmed = text.strip()
    if not trimmed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="text 不能为空")
    if len(trimmed) > max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"text 不能超过 {max_length} 字",
        )
    return trimmed


@router.post("/check")
async def check_content(
    payload: CheckRequest,
    service: ComplianceService = Depends(get_compliance_service_dep),
    settings: Settings = Depends(get_settings_dep),
) -> dict:
    text = _validated_text(payload.text, settings.max_text_length)
    try:
        report = await service.check_content(
            text,
            target_country=payload.targetCountry or None,
            content_type=payload.contentType or None,
        )
    except Exception as exc:
        logger.error(f"Compliance check failed: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "审核请求处理失败",
        ) from exc
    return report.model_dump(mode="json")
