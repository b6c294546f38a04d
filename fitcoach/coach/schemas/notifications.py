from typing import Literal

from pydantic import BaseModel

NotificationType = Literal["success", "error", "info", "warning"]


class Notification(BaseModel):
    type: NotificationType
    title: str
    message: str
