"""Process-lifetime cache of translated blocks."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class TranslationCache:
    """Maps a block's raw text to its fully assembled translated raw text.

    One instance belongs to a document session and is shared by every pass
    it runs. It is cleared in full whenever the transformation settings
    change; there is no partial invalidation.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, raw: str) -> Optional[str]:
        return self._entries.get(raw)

    def put(self, raw: str, translated: str) -> None:
        with self._lock:
            self._entries[raw] = translated

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.debug("Translation cache cleared (%d entries dropped).", dropped)

    def __contains__(self, raw: object) -> bool:
        return raw in self._entries

    def __len__(self) -> int:
        return len(self._entries)
