"""
User-facing notifications collected during a request.

Services record one notification per completed write (default variant) and one
per failed write or forced denied action (destructive variant). Routes return
them to the UI alongside the payload.
"""

from pydantic import BaseModel
from typing import List, Literal
import logging

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class Notifier:
    def __init__(self):
        self.notifications: List[Notification] = []

    def success(self, title: str, description: str = "") -> None:
        self.notifications.append(Notification(title=title, description=description))

    def error(self, description: str, title: str = "Error") -> None:
        logger.debug(f"User notification: {description}")
        self.notifications.append(
            Notification(title=title, description=description, variant="destructive")
        )

    def drain(self) -> List[Notification]:
        items, self.notifications = self.notifications, []
        return items
