from __future__ import annotations

import threading
from typing import Any, Literal

from .models import Notice


class NoticeBoard:
    """User-facing report channel; each key is reported at most once until cleared."""

    def __init__(self, max_notices: int = 200):
        self._notices: dict[str, Notice] = {}
        self._max_notices = max_notices
        self._lock = threading.Lock()

    def report(
        self,
        key: str,
        *,
        title: str,
        description: str = "",
        code: str = "notice",
        severity: Literal["error", "warning", "info"] = "error",
        details: dict[str, Any] | None = None,
    ) -> bool:
        with self._lock:
            if key in self._notices:
                return False
            self._notices[key] = Notice(
                key=key,
                code=code,
                severity=severity,
                title=title,
                description=description,
                details=details or {},
            )
            while len(self._notices) > self._max_notices:
                oldest = next(iter(self._notices))
                del self._notices[oldest]
            return True

    def clear(self, key: str) -> bool:
        with self._lock:
            return self._notices.pop(key, None) is not None

    def entries(self) -> list[Notice]:
        with self._lock:
            return list(self._notices.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._notices)
