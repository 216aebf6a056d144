from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel


def success_response(data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Wrap a payload in the ``{"success": true, "data": ...}`` envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json", by_alias=True) if isinstance(item, BaseModel) else item
            for item in data
        ]
    body = {"success": True, "data": jsonable_encoder(data)}
    body.update(jsonable_encoder(extra, by_alias=True))
    return body


def error_response(message: str, **extra: Any) -> Dict[str, Any]:
    body = {"success": False, "message": message}
    body.update(extra)
    return body
