from typing import Optional
from fastapi import Request
from pydantic import ValidationError as PydanticValidationError
from .exceptions import ValidationError
from .lock_utils import KeyLockManager
from .query_params import QueryParams


def get_locks(request: Request) -> KeyLockManager:
    """Lock manager built once at startup (see main.lifespan)."""
    return request.app.state.locks


async def optional_pagination(request: Request) -> Optional[QueryParams]:
    """
    Return QueryParams if any pagination keys are present in the query string,
    otherwise return None.
    """
    qp = request.query_params
    if not any(k in qp for k in ("limit", "offset", "sort_by", "sort_order")):
        return None
    try:
        return QueryParams(**qp)
    except PydanticValidationError as exc:
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise ValidationError(f"Invalid pagination parameters: {', '.join(fields)}", fields=fields)
