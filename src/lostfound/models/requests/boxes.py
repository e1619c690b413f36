from pydantic import BaseModel, Field

from lostfound.models.schema import LockStatus


class BoxCommandRequest(BaseModel):
    box_id: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    device_id: str = Field(..., min_length=1)
    status: LockStatus
