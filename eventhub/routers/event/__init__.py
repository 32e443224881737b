from fastapi import APIRouter

from eventhub.routers.event import listing, creation, detail, attendance, stream


router = APIRouter()

# 고정 경로(/events/mine, /events/stream)를 /events/{event_id}보다 먼저 등록
router.include_router(stream.router)
router.include_router(listing.router)
router.include_router(creation.router)
router.include_router(detail.router)
router.include_router(attendance.router)
