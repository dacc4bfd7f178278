from pydantic import BaseModel
from typing import Optional

class UploadResponse(BaseModel):
    """Response model for upload endpoint"""
    job_id: str
    status: str
    message: Optional[str] = None

class ErrorResponse(BaseModel):
    error: str
    status_code: int
