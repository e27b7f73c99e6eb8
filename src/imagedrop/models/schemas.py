"""
imagedrop API schemas.

Request/response models for:
- Images: upload, list, delete
- System: health
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

# ========================================
# IMAGE SCHEMAS
# ========================================


class ImageRecord(BaseModel):
    """Stored image row."""

    id: int = Field(..., description="Image identifier assigned by the store")
    path: str = Field(..., description="URL path of the stored file")
    uploaded_at: Optional[datetime] = Field(
        None, alias="uploadedAt", description="Upload timestamp"
    )

    class Config:
        """Pydantic configuration."""

        populate_by_name = True


class ImageUploadResponse(BaseModel):
    """Response for image upload."""

    message: str = Field(..., description="Status message")
    path: str = Field(..., description="URL path of the stored file")
    filename: str = Field(..., description="Generated file name")


class ImageDeleteResponse(BaseModel):
    """Response for image deletion."""

    message: str = Field(..., description="Status message")


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(..., description="Error message")
    details: Optional[str] = Field(None, description="Underlying cause")


# ========================================
# SYSTEM SCHEMAS
# ========================================


class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(..., description="Overall system status")
    database: str = Field(..., description="Database status")
