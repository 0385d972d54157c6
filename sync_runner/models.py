"""
Shared Pydantic models for the sync runner.

Request and response bodies use the camelCase field names the dashboard
sends; Python attributes are snake_case via aliases.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SOURCE_KINDS = ("distribution-list", "talent-pool")


class StartImportRequest(BaseModel):
    """
    Request body for starting a bulk import.

    sourceId, ownerKey and at least one of destinationTag /
    destinationListIds are required; the endpoint checks this itself so
    a missing field yields a 400 rather than a schema error. The route
    validates the body itself, so schema errors are reported as 400 too.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_id: Optional[str] = Field(None, alias="sourceId", description="Distribution list or talent pool id")
    owner_key: Optional[str] = Field(None, alias="ownerKey", description="User whose Vincere tokens are used")
    source_kind: str = Field("distribution-list", alias="sourceKind")
    source_user_id: Optional[str] = Field(
        None, alias="sourceUserId", description="Vincere user id owning the distribution list (defaults to ownerKey)"
    )
    destination_tag: Optional[str] = Field(None, alias="destinationTag")
    destination_list_ids: Optional[List[int]] = Field(None, alias="destinationListIds")
    max_records: Optional[int] = Field(None, alias="maxRecords", ge=1)
    chunk_size: Optional[int] = Field(None, alias="chunkSize", ge=1, le=250)
    pause_ms: Optional[int] = Field(None, alias="pauseMs", ge=0, le=60000)

    @field_validator("source_id", "owner_key", "source_user_id", mode="before")
    @classmethod
    def ids_as_text(cls, v: Any) -> Any:
        """Vincere list, pool and user ids are numeric; accept them as numbers too."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class StartImportResponse(BaseModel):
    """Response after starting an import."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    progress_url: str = Field(..., alias="progressUrl")
    status_url: str = Field(..., alias="statusUrl")


class CancelImportResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class OwnerTokensRequest(BaseModel):
    """Tokens obtained by the OAuth callback for one owner."""

    model_config = ConfigDict(populate_by_name=True)

    id_token: Optional[str] = Field(None, alias="idToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class OwnerTokensResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_key: str = Field(..., alias="ownerKey")
    has_id_token: bool = Field(..., alias="hasIdToken")
    has_refresh_token: bool = Field(..., alias="hasRefreshToken")


class ActiveCampaignImportRequest(BaseModel):
    """Direct import of already-normalized candidates."""

    model_config = ConfigDict(populate_by_name=True)

    candidates: List[Dict[str, Any]] = Field(default_factory=list)
    tag_name: Optional[str] = Field(None, alias="tagName", description="Legacy single tag")
    tag_names: Optional[List[str]] = Field(None, alias="tagNames")
    list_ids: List[int] = Field(default_factory=list, alias="listIds")
    exclude_automations: bool = Field(True, alias="excludeAutomations")


class ActiveCampaignImportResponse(BaseModel):
    sent: int
    chunks: int
    warnings: List[str] = Field(default_factory=list)


class CreateListRequest(BaseModel):
    name: str = ""


class CreateListResponse(BaseModel):
    id: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    active_imports: int
    max_concurrent_imports: int
    timestamp: datetime
