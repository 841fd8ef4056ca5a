from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from stepcoin.core.config import get_settings
from stepcoin.services.internal_auth import evaluate_internal_access
from stepcoin.services.principal_tokens import extract_bearer_token, parse_principal_token

logger = structlog.get_logger(__name__)


def _assert_internal_access(request: Request) -> str:
    settings = get_settings()
    decision = evaluate_internal_access(
        request,
        expected_token=settings.internal_api_token,
        allowlist=settings.internal_api_allowlist,
        trusted_proxies=settings.internal_api_trusted_proxies,
    )
    if not decision.allowed:
        logger.warning(
            "internal_auth_failed",
            reason=decision.reason,
            client_ip=decision.client_ip,
            actor=decision.actor,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    return decision.actor


def require_user_id(request: Request) -> int:
    settings = get_settings()
    token = extract_bearer_token(request.headers.get("Authorization"))
    user_id = parse_principal_token(secret=settings.principal_token_secret, token=token)
    if user_id is None:
        raise HTTPException(status_code=401, detail={"code": "E_UNAUTHORIZED"})
    return user_id
