"""User-facing notifications (toasts)."""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Toast:
    """A short notification shown to the editor user."""

    title: str
    description: str = ""
    variant: str = "default"  # "default" or "destructive"

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "description": self.description, "variant": self.variant}


class Notifier:
    """Logs toasts. Subclasses deliver them to the user."""

    def notify(self, toast: Toast) -> None:
        if toast.variant == "destructive":
            logger.warning(f"{toast.title}: {toast.description}")
        else:
            logger.info(f"{toast.title}: {toast.description}")


class CollectingNotifier(Notifier):
    """Keeps toasts until they are drained into an HTTP response."""

    def __init__(self):
        self.toasts: list[Toast] = []

    def notify(self, toast: Toast) -> None:
        super().notify(toast)
        self.toasts.append(toast)

    def drain(self) -> list[Toast]:
        toasts, self.toasts = self.toasts, []
        return toasts
