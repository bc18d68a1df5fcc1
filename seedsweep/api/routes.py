"""API routes."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from seedsweep.db.database import get_db
from seedsweep.db.models import SeedingOverride
from seedsweep.api.models import (
    HealthResponse, SyncTriggerResponse, MediaItemResponse, MediaEligibilitySummary, EligibilityResponse,
    TorrentEligibilityResponse, DeletionResponse, OverrideRequest, OverrideResponse,
    SyncFrequencyRequest, SyncFrequencyResponse, ReloadResponse, BulkDeleteRequest, BulkDeleteResponse,
)
from seedsweep.config import get_config
from seedsweep.core.deletion import DeletionService
from seedsweep.core.eligibility import EligibilityService
from seedsweep.core.media_sync import MediaSyncService
from seedsweep.core.settings import (
    DEFAULT_SYNC_FREQUENCY, SYNC_FREQUENCY_KEY, get_setting, reload_integrations, set_setting,
)
from seedsweep.core.sync_runner import run_full_sync
from seedsweep.errors import DeletionError, DeletionInProgressError, MediaItemNotFoundError
from seedsweep.scheduler import trigger_sync
from seedsweep.services.registry import get_integrations
from seedsweep.utils.duration import parse_duration

logger = logging.getLogger(__name__)
router = APIRouter()


def _static_config():
    try:
        return get_config()
    except RuntimeError:
        return None


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", integrations=get_integrations().enabled_names())


@router.post("/api/sync", response_model=SyncTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
def sync():
    """Déclenche une synchronisation immédiate en arrière-plan."""
    scheduled = trigger_sync()
    message = "Sync scheduled" if scheduled else "Sync started without scheduler"
    return SyncTriggerResponse(message=message, scheduled=scheduled)


@router.get("/api/media", response_model=List[MediaItemResponse])
def list_media(
    user_id: Optional[int] = Query(None),
    media_type: Optional[str] = Query(None, alias="type", pattern="^(movie|series)$"),
    sync_first: bool = Query(False, alias="sync"),
    db: Session = Depends(get_db),
):
    """Liste des médias avec leur éligibilité; ``sync=true`` synchronise d'abord."""
    if sync_first:
        summary = run_full_sync()
        logger.info(f"Sync before listing media: {summary}")

    eligibility = EligibilityService(db)
    results = []
    for item in MediaSyncService(db).list_media(user_id=user_id, media_type=media_type):
        response = MediaItemResponse.model_validate(item)
        verdict = eligibility.check_eligibility(item.id)
        response.eligibility = MediaEligibilitySummary(
            eligible=verdict.is_eligible,
            reason=verdict.reason,
            seeding_time=verdict.seeding_time,
            seeding_ratio=verdict.seeding_ratio,
            tracker_type=verdict.tracker_type,
        )
        results.append(response)
    return results


@router.post("/api/media/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_media(request: BulkDeleteRequest, db: Session = Depends(get_db)):
    """Supprime plusieurs médias; les erreurs sont collectées par média."""
    if not request.ids:
        raise HTTPException(status_code=400, detail="No media IDs provided")

    logger.info(f"=== Bulk deleting {len(request.ids)} media items (user: {request.user_id}) ===")
    result = DeletionService(db).delete_media_items(request.ids, request.user_id)
    return BulkDeleteResponse(
        success=not result.errors,
        deleted=result.deleted,
        total=result.total,
        errors=result.errors,
    )


@router.get("/api/media/{media_id}/eligibility", response_model=EligibilityResponse)
def get_eligibility(media_id: int, db: Session = Depends(get_db)):
    """Éligibilité à la suppression (lecture seule)."""
    try:
        result = EligibilityService(db).check_eligibility(media_id)
    except MediaItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return EligibilityResponse(
        media_id=media_id,
        is_eligible=result.is_eligible,
        reason=result.reason,
        seeding_time=result.seeding_time,
        required_time=result.required_time,
        seeding_ratio=result.seeding_ratio,
        required_ratio=result.required_ratio,
        tracker_type=result.tracker_type,
        is_seeding=result.is_seeding,
        last_watched=result.last_watched,
        play_count=result.play_count,
        torrents=[TorrentEligibilityResponse(**vars(t)) for t in result.torrents],
    )


@router.delete("/api/media/{media_id}", response_model=DeletionResponse)
def delete_media(media_id: int, user_id: Optional[int] = Query(None), db: Session = Depends(get_db)):
    """Supprime un média partout; 207 si certaines étapes distantes ont échoué."""
    logger.info(f"=== Deleting media item {media_id} (user: {user_id}) ===")
    try:
        result = DeletionService(db).delete_media_item(media_id, user_id)
    except MediaItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DeletionInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DeletionError as e:
        logger.warning(str(e))
        body = DeletionResponse(
            media_id=media_id,
            title=e.title,
            deleted=True,
            errors=[str(f) for f in e.failures],
        )
        return JSONResponse(status_code=207, content=body.model_dump())

    return DeletionResponse(media_id=result.media_id, title=result.title, deleted=True, errors=[])


@router.get("/api/overrides", response_model=List[OverrideResponse])
def list_overrides(db: Session = Depends(get_db)):
    return db.query(SeedingOverride).order_by(SeedingOverride.id).all()


@router.post("/api/overrides", response_model=OverrideResponse, status_code=status.HTTP_201_CREATED)
def create_override(request: OverrideRequest, db: Session = Depends(get_db)):
    """Crée une exigence de seed pour un tracker (prise en compte à la prochaine sync)."""
    if request.tracker_id is None and not request.tracker_name:
        raise HTTPException(status_code=400, detail="tracker_id or tracker_name is required")

    override = SeedingOverride(**request.model_dump())
    db.add(override)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Override already exists for tracker {request.tracker_id}")
    db.refresh(override)
    return override


@router.delete("/api/overrides/{override_id}")
def delete_override(override_id: int, db: Session = Depends(get_db)):
    override = db.get(SeedingOverride, override_id)
    if not override:
        raise HTTPException(status_code=404, detail="Override not found")
    db.delete(override)
    db.commit()
    return {"message": "Override deleted"}


def _frequency_default() -> str:
    static = _static_config()
    return static.scheduler.default_sync_frequency if static else DEFAULT_SYNC_FREQUENCY


@router.get("/api/settings/sync-frequency", response_model=SyncFrequencyResponse)
def get_sync_frequency_endpoint(db: Session = Depends(get_db)):
    raw = get_setting(db, SYNC_FREQUENCY_KEY, _frequency_default())
    try:
        seconds = parse_duration(raw).total_seconds()
    except ValueError:
        raw = _frequency_default()
        seconds = parse_duration(raw).total_seconds()
    return SyncFrequencyResponse(frequency=raw, seconds=seconds)


@router.put("/api/settings/sync-frequency", response_model=SyncFrequencyResponse)
def put_sync_frequency(request: SyncFrequencyRequest, db: Session = Depends(get_db)):
    """Met à jour la fréquence; le scheduler la relit à sa prochaine vérification."""
    try:
        frequency = parse_duration(request.frequency)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if frequency.total_seconds() <= 0:
        raise HTTPException(status_code=400, detail="sync frequency must be positive")

    set_setting(db, SYNC_FREQUENCY_KEY, request.frequency, "duration")
    return SyncFrequencyResponse(frequency=request.frequency, seconds=frequency.total_seconds())


@router.post("/api/settings/reload", response_model=ReloadResponse)
def reload_settings(db: Session = Depends(get_db)):
    """Reconstruit les intégrations depuis la config et la table settings."""
    registry = reload_integrations(db, _static_config())
    return ReloadResponse(message="Integrations reloaded", enabled=registry.enabled_names())
