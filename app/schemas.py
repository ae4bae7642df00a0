"""
Pydantic schemas for API responses.

Request bodies for /api/submit are deliberately untyped at the API
boundary; app.shaping coerces them. This module contains the response
models returned to the form and the listing page.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Response Models
# =============================================================================

class SubmitResponse(BaseModel):
    """Response model for a stored submission."""
    ok: bool = Field(default=True, description="Operation status")
    id: str = Field(..., description="Identifier of the stored submission")


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    error: str = Field(..., description="Error description")


class SmsStatus(BaseModel):
    """Outcome of the SMS notification attached to a submission."""
    ok: bool
    response: Optional[Any] = Field(None, description="Provider reply or transport error text")
    sentAt: str = Field(..., description="When the dispatch finished (ISO-8601 UTC)")


class SubmissionRow(BaseModel):
    """
    A single submission in the listing.
    Maps database fields to the API field names the form uses.
    """
    id: str
    name: str
    phone: str
    businessTitle: str
    address: dict[str, str] = Field(default_factory=dict)
    addressVersion: int = Field(1, description="Address schema version")
    rating: Optional[float] = Field(None, ge=0, le=5, description="Null when not supplied")
    createdAt: str = Field(..., description="Creation time (ISO-8601 UTC)")
    smsStatus: Optional[SmsStatus] = None

    def to_response(self) -> dict:
        """Serialize, leaving smsStatus out while it is unset."""
        exclude = {"smsStatus"} if self.smsStatus is None else None
        return self.model_dump(mode="json", exclude=exclude)


class SubmissionsListResponse(BaseModel):
    """Response model for GET /api/submit."""
    ok: bool = True
    rows: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
