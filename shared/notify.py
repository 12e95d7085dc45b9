from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

log = logging.getLogger(__name__)

@dataclass
class Notice:
    kind: str  # success, error, info
    title: str
    body: str = ""

class Notifier:
    """Transient user-facing messages (toast / alert equivalent)."""

    def __init__(self, sink: Optional[Callable[[Notice], None]] = None):
        self.sink = sink
        self.messages: List[Notice] = []

    def show(self, kind: str, title: str, body: str = "") -> Notice:
        notice = Notice(kind=kind, title=title, body=body)
        self.messages.append(notice)
        log.info("notice[%s] %s %s", kind, title, body)
        if self.sink:
            try:
                self.sink(notice)
            except Exception:
                log.exception("notice sink failed")
        return notice

    def success(self, title: str, body: str = "") -> Notice:
        return self.show("success", title, body)

    def error(self, title: str, body: str = "") -> Notice:
        return self.show("error", title, body)

    def info(self, title: str, body: str = "") -> Notice:
        return self.show("info", title, body)

    def titles(self) -> List[str]:
        return [m.title for m in self.messages]
