from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field


class ViewSnapshotMessage(BaseModel):
    """SSE 응답 스키마 (세션이 Ready가 될 때마다 전송되는 현재 상태)"""
    scope: str = Field(..., description="구독 범위 (event:<id> 또는 events)")
    state: str = Field(..., description="세션 상태")
    revision: int = Field(..., description="Ready 전환 횟수 (클라이언트 중복 제거용)")
    data: Dict[str, Any] = Field(..., description="현재 뷰 스냅샷")
    stale: bool = Field(False, description="마지막 새로고침 실패 여부 (이전 데이터 유지)")
    emitted_at: datetime
