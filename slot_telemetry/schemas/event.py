# Pydantic schemas

from pydantic import BaseModel


class TrackResponse(BaseModel):
    """Acknowledgment for an accepted event"""

    success: bool = True


class ErrorResponse(BaseModel):
    """Error body; never carries exception detail"""

    error: str
    code: str | None = None
