"""Pydantic models for API requests/responses."""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime


class HealthResponse(BaseModel):
    status: str
    integrations: List[str]


class SyncTriggerResponse(BaseModel):
    message: str
    scheduled: bool


class MediaEligibilitySummary(BaseModel):
    eligible: bool
    reason: str
    seeding_time: int
    seeding_ratio: float
    tracker_type: str


class MediaItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    type: str
    tmdb_id: Optional[int] = None
    tvdb_id: Optional[int] = None
    sonarr_id: Optional[int] = None
    radarr_id: Optional[int] = None
    overseerr_request_id: Optional[int] = None
    requested_by_user_id: Optional[int] = None
    file_path: Optional[str] = None
    file_size: int = 0
    is_downloaded: bool = False
    added_date: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    eligibility: Optional[MediaEligibilitySummary] = None


class TorrentEligibilityResponse(BaseModel):
    hash: str
    is_eligible: bool
    reason: str
    tracker_type: str
    seeding_time: int
    required_time: Optional[int]
    ratio: float
    required_ratio: Optional[float]
    is_seeding: bool


class EligibilityResponse(BaseModel):
    media_id: int
    is_eligible: bool
    reason: str
    seeding_time: int
    required_time: Optional[int]
    seeding_ratio: float
    required_ratio: Optional[float]
    tracker_type: str
    is_seeding: bool
    last_watched: Optional[datetime]
    play_count: int
    torrents: List[TorrentEligibilityResponse]


class DeletionResponse(BaseModel):
    media_id: int
    title: str
    deleted: bool
    errors: List[str]


class BulkDeleteRequest(BaseModel):
    ids: List[int]
    user_id: Optional[int] = None


class BulkDeleteResponse(BaseModel):
    success: bool
    deleted: int
    total: int
    errors: List[str] = []


class OverrideRequest(BaseModel):
    tracker_id: Optional[int] = None
    tracker_name: Optional[str] = None
    min_seeding_time_seconds: Optional[int] = None
    min_seeding_ratio: Optional[float] = None


class OverrideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tracker_id: Optional[int]
    tracker_name: Optional[str]
    min_seeding_time_seconds: Optional[int]
    min_seeding_ratio: Optional[float]


class SyncFrequencyRequest(BaseModel):
    frequency: str


class SyncFrequencyResponse(BaseModel):
    frequency: str
    seconds: float


class ReloadResponse(BaseModel):
    message: str
    enabled: List[str]
