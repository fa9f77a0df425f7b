# utils/query_params.py

from typing import Optional, Type
from pydantic import BaseModel, Field
from sqlalchemy import asc, desc
from sqlalchemy.orm import Query as SAQuery
from utils.exceptions import ValidationError


class QueryParams(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=500)
    offset: Optional[int] = Field(None, ge=0)
    sort_by: Optional[str] = None
    sort_order: str = Field("desc", pattern="^(asc|desc)$")

    def apply(self, query: SAQuery, model: Type, default_sort: str = "id") -> SAQuery:
        # Ordering
        sort_by = self.sort_by or default_sort
        col = getattr(model, sort_by, None)
        if col is None:
            raise ValidationError(f"Invalid sort_by column: {sort_by!r}")
        query = query.order_by(asc(col) if self.sort_order == "asc" else desc(col))

        # Pagination only if provided
        if self.offset is not None:
            query = query.offset(self.offset)
        if self.limit is not None:
            query = query.limit(self.limit)

        return query
