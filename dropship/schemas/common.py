from typing import Optional, Any, Dict, Annotated
from decimal import Decimal
from pydantic import BaseModel, PlainSerializer


class ResponseModel(BaseModel):
    """Standard API response model"""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[Dict[str, Any]] = None


# Money is Decimal internally and a plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def dump(schema, obj) -> Dict[str, Any]:
    """Serialize an ORM object (or dict) through a response schema"""
    return schema.model_validate(obj).model_dump(mode="json")
