from enum import Enum
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

from eventhub.models.event import EventCategoryType


ALL_CATEGORIES = "all"


class TimeWindow(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    ALL = "all"


class FilterCriteria(BaseModel):
    """이벤트 목록 필터 조건 (category / 시간 구간 / 제목 검색)"""
    model_config = ConfigDict(frozen=True)

    category: EventCategoryType | Literal["all"] = ALL_CATEGORIES
    time_window: TimeWindow = TimeWindow.UPCOMING
    search: str = Field("", max_length=100)

    def normalized_search(self) -> str:
        return self.search.strip()
