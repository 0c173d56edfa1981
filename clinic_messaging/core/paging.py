import math
from datetime import datetime, timezone
from pydantic import BaseModel

class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int

def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit

def page_meta(total: int, page: int, limit: int) -> PageMeta:
    return PageMeta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit) if limit else 0)

def as_utc(ts: datetime | None) -> datetime | None:
    """Cursor timestamps are compared in UTC; naive values are taken to already be UTC."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
