"""Device-facing endpoints polled by the box firmware.

No token is required: a box only knows its own id. Every handler checks the
id shape before storage is touched.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from lostfound.core.boxes import BoxCommandQueue
from lostfound.core.errors import NotFoundError, StorageError, ValidationError
from lostfound.dependencies import device_id, get_box_queue
from lostfound.models.requests import StatusUpdate
from lostfound.shared import Logger
from lostfound.shared.clock import format_timestamp
from lostfound.shared.http import send_error, send_success

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/arduino", tags=["arduino"])

Queue = Annotated[BoxCommandQueue, Depends(get_box_queue)]
DeviceId = Annotated[str, Depends(device_id)]


@router.get("/command")
def get_command(box_id: DeviceId, queue: Queue):
    """
    Polled by the device every few seconds.
    Returns {"command": null} when idle or when the pending command went stale.
    """
    pending = queue.fetch_command(box_id)
    if pending is None:
        return send_success({"command": None}, "No pending command")

    logger.debug("Delivering %s to %s (age %ss)", pending.command, box_id, pending.age_seconds)
    return send_success(
        {
            "command": pending.command,
            "timestamp": format_timestamp(pending.issued_at),
            "age_seconds": pending.age_seconds,
        },
        "Command found",
    )


@router.post("/clear")
def clear_command(box_id: DeviceId, queue: Queue):
    """Called by the device once it has executed the command."""
    cleared = queue.clear_command(box_id)
    message = "Command cleared successfully" if cleared else "No pending command to clear"
    return send_success({"device_id": box_id, "cleared": cleared}, message)


@router.post("/ping")
def ping(box_id: DeviceId, queue: Queue):
    timestamp = queue.heartbeat(box_id)
    if timestamp is None:
        raise NotFoundError.of("Box")

    return send_success(
        {"device_id": box_id, "timestamp": format_timestamp(timestamp)},
        "Ping received",
    )


@router.post("/status")
def update_status(data: StatusUpdate, queue: Queue):
    """Manual lock status report, used for diagnostics."""
    if not queue.is_valid_id(data.device_id):
        raise ValidationError("Invalid device_id format")

    if not queue.set_lock_status(data.device_id, data.status):
        raise NotFoundError.of("Box")

    return send_success({"device_id": data.device_id, "status": data.status}, "Status updated")


@router.get("/info")
def get_info(box_id: DeviceId, queue: Queue):
    box = queue.get_box(box_id)
    if box is None:
        raise NotFoundError.of("Box")
    return send_success(box, "Box information")


@router.get("/health")
def health(queue: Queue):
    try:
        connected = queue.ping_database()
        stats = queue.stats()
    except StorageError:
        logger.error("Health check failed: database unreachable")
        return send_error("System unhealthy", 500, {"status": "unhealthy", "database": "disconnected"})

    return send_success(
        {
            "status": "healthy",
            "database": "connected" if connected else "disconnected",
            "stats": stats,
        },
        "System healthy",
    )
