"""
Success envelope and pagination helpers shared by the routers.
"""

import math
from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
    **extra,
) -> JSONResponse:
    """``{"status": "success", "message"?: ..., "data"?: ...}``"""
    content = {"status": "success"}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def pagination(total: int, page: int, per_page: int) -> dict:
    return {
        "total": total,
        "per_page": per_page,
        "current_page": page,
        "last_page": max(1, math.ceil(total / per_page)) if per_page else 1,
    }
