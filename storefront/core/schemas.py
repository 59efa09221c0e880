"""Shared schema base classes"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Schema exchanged with clients as camelCase JSON"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

class SuccessResponse(CamelModel):
    success: bool = True
    message: str = "OK"
