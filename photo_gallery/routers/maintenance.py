import logging
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from photo_gallery.coordinator import DEFAULT_ORPHAN_MIN_AGE, MediaCoordinator
from photo_gallery.dao import MetadataStoreError
from photo_gallery.deps import get_coordinator
from photo_gallery.schemas import ReconcileResponse
from photo_gallery.storage import ObjectStoreError

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGE_SECONDS = int(DEFAULT_ORPHAN_MIN_AGE.total_seconds())

router = APIRouter(prefix="/maintenance")


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
    dry_run: Annotated[bool, Query()] = False,
    min_age_seconds: Annotated[int, Query(ge=0)] = DEFAULT_MIN_AGE_SECONDS,
) -> ReconcileResponse | JSONResponse:
    """
    Delete stored objects that no photo references and report what was found.
    """
    try:
        report = await coordinator.reconcile(
            dry_run=dry_run, min_age=timedelta(seconds=min_age_seconds)
        )
    except (ObjectStoreError, MetadataStoreError) as exc:
        logger.exception("Reconcile failed")
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)}
        )
    return ReconcileResponse(
        status="ok",
        dry_run=dry_run,
        scanned=report.scanned,
        skipped_recent=report.skipped_recent,
        orphaned=report.orphaned,
        deleted=report.deleted,
    )
