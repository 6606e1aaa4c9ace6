# wabridge/models/api_common.py

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ErrorResponse(BaseModel):
    """Error envelope returned by every exception handler."""
    success: bool = False
    error: str = Field(..., description="Human readable error message.")

class StatusResponse(BaseModel):
    status: str = Field(..., description="Overall status (e.g. 'ok').")
    project: str
