from typing import Annotated

from fastapi import APIRouter, Depends

from lostfound.core.boxes import BoxCommandQueue
from lostfound.core.errors import NotFoundError, ValidationError
from lostfound.core.identity import Identity
from lostfound.dependencies import (
    current_identity,
    get_box_queue,
    optional_identity,
    require_roles,
)
from lostfound.models.requests import BoxCommandRequest
from lostfound.models.schema import BoxCommand, LockStatus, Role
from lostfound.shared import Logger
from lostfound.shared.clock import format_timestamp
from lostfound.shared.http import send_success

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/boxes", tags=["boxes"])

Queue = Annotated[BoxCommandQueue, Depends(get_box_queue)]


def _issue(queue: BoxCommandQueue, box_id: str, command: BoxCommand, identity: Identity):
    if not queue.is_valid_id(box_id):
        raise ValidationError("Invalid box_id format")

    issued_at = queue.issue_command(box_id, command, identity.subject_id)
    if issued_at is None:
        raise NotFoundError.of("Box")

    return send_success(
        {"box_id": box_id, "command": command, "issued_at": format_timestamp(issued_at)},
        f"{command.capitalize()} command sent to box",
    )


@router.get("")
def list_boxes(
    queue: Queue,
    identity: Annotated[Identity | None, Depends(optional_identity)],
    status: LockStatus | None = None,
):
    """Anonymous callers only see availability; command state needs a login."""
    boxes = queue.list_boxes(status)
    if identity is None:
        data = [box.model_dump(exclude={"pending_command", "last_ping"}) for box in boxes]
    else:
        data = boxes
    return send_success(data, f"{len(boxes)} boxes")


@router.get("/{box_id}")
def get_box(
    box_id: str,
    queue: Queue,
    identity: Annotated[Identity, Depends(current_identity)],
):
    if not queue.is_valid_id(box_id):
        raise ValidationError("Invalid box_id format")

    box = queue.get_box(box_id)
    if box is None:
        raise NotFoundError.of("Box")
    return send_success(box, "Box details")


@router.post("/unlock")
def unlock_box(
    data: BoxCommandRequest,
    queue: Queue,
    identity: Annotated[Identity, Depends(current_identity)],
):
    return _issue(queue, data.box_id, BoxCommand.UNLOCK, identity)


@router.post("/lock")
def lock_box(
    data: BoxCommandRequest,
    queue: Queue,
    identity: Annotated[Identity, Depends(require_roles(Role.FOUNDER, Role.BOTH))],
):
    return _issue(queue, data.box_id, BoxCommand.LOCK, identity)
