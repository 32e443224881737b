import pydantic
from fastapi import Query

from eventhub.schemas.filters import FilterCriteria
from eventhub.exceptions import ValidationError


def get_filter_criteria(
    category: str = Query("all", description="conference|workshop|social|sports|music|other|all"),
    time_window: str = Query("upcoming", description="upcoming|past|all"),
    search: str = Query("", description="제목 부분 검색 (대소문자 무시)"),
) -> FilterCriteria:
    """쿼리 파라미터를 FilterCriteria로 변환 (잘못된 값은 400)"""
    try:
        return FilterCriteria(category=category.lower(), time_window=time_window.lower(), search=search)
    except pydantic.ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(
            message="Invalid filter",
            detail=f"Invalid filter fields: {fields}"
        ) from e
