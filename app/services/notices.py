from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from flask import current_app


logger = logging.getLogger(__name__)

NOTICE_BOOKMARK_SAVED = "bookmark_saved"
NOTICE_BOOKMARK_DELETED = "bookmark_deleted"
NOTICE_MEMO_UPDATED = "memo_updated"
NOTICE_BOOKMARK_LABELS_UPDATED = "bookmark_labels_updated"
NOTICE_PREVIEW_REFRESHED = "preview_refreshed"
NOTICE_LABEL_CREATED = "label_created"
NOTICE_LABEL_UPDATED = "label_updated"
NOTICE_LABEL_DELETED = "label_deleted"


@dataclass(frozen=True)
class Notice:
    kind: str
    message: str
    level: str = "success"
    payload: dict = field(default_factory=dict)


class NoticeBus:
    """Per-application fan-out of user-facing notices."""

    def __init__(self):
        self._subscribers: list[Callable[[Notice], None]] = []

    def subscribe(self, callback: Callable[[Notice], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, notice: Notice) -> None:
        for callback in list(self._subscribers):
            callback(notice)


def log_notice(notice: Notice) -> None:
    logger.info("notice %s: %s %s", notice.kind, notice.message, notice.payload)


def publish(kind: str, message: str, level: str = "success", **payload) -> None:
    bus: NoticeBus = current_app.extensions["notices"]
    bus.publish(Notice(kind=kind, message=message, level=level, payload=payload))
