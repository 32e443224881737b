from __future__ import annotations

import logging
from typing import Protocol
from uuid import UUID

from fastapi import Depends, Request

logger = logging.getLogger(__name__)

# 외부 게이트웨이(identity provider)가 인증 후 주입하는 헤더
USER_ID_HEADER = "X-User-Id"


class IdentityProvider(Protocol):
    def resolve(self, request: Request) -> UUID | None:
        """현재 사용자 ID 또는 None (unauthenticated)"""
        ...


class HeaderIdentityProvider:
    """
    게이트웨이가 검증한 사용자 ID를 헤더에서 읽음
    - 토큰 검증은 외부 identity provider 책임 (이 서비스는 수행하지 않음)
    - 헤더가 없거나 UUID 형식이 아니면 unauthenticated
    """

    def __init__(self, header_name: str = USER_ID_HEADER):
        self.header_name = header_name

    def resolve(self, request: Request) -> UUID | None:
        raw = request.headers.get(self.header_name)
        if not raw:
            return None
        try:
            return UUID(raw.strip())
        except ValueError:
            logger.warning(f"Invalid {self.header_name} header: {raw!r}")
            return None


def get_identity_provider(request: Request) -> IdentityProvider:
    """앱 state에 등록된 identity provider (없으면 헤더 기반)"""
    provider = getattr(request.app.state, "identity_provider", None)
    return provider or HeaderIdentityProvider()


def get_current_user_id(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> UUID | None:
    """
    현재 사용자 ID (없으면 None)

    - 쓰기 경로에서는 서비스가 None을 NotAuthenticatedError로 처리
    - 읽기 경로에서는 익명 조회 허용 (내 상태는 "none")
    """
    return provider.resolve(request)
