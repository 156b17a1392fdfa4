"""Accumulation and throttled publishing of streamed job output."""

from __future__ import annotations

import time
from typing import Callable, List, Optional

Clock = Callable[[], float]
Publisher = Callable[[str], None]


class StreamAggregator:
    """Collects incremental deltas for one in-flight singleton job.

    Intermediate snapshots are published at most once per ``interval``
    seconds. The final text is always published, regardless of the throttle
    window, unless the owning pass has been cancelled.
    """

    def __init__(
        self,
        publish: Publisher,
        *,
        prefix: str = "",
        suffix: str = "",
        interval: float = 0.1,
        clock: Clock = time.monotonic,
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> None:
        self._publish = publish
        self.prefix = prefix
        self.suffix = suffix
        self.interval = interval
        self._clock = clock
        self._is_cancelled = is_cancelled
        self._chunks: List[str] = []
        self._last_publish: Optional[float] = None
        self.publish_count = 0

    @property
    def buffer(self) -> str:
        return "".join(self._chunks)

    def assemble(self, text: str) -> str:
        return f"{self.prefix}{text}{self.suffix}"

    def on_delta(self, chunk: str) -> None:
        if self._is_cancelled():
            return
        self._chunks.append(chunk)
        now = self._clock()
        if self._last_publish is not None and now - self._last_publish < self.interval:
            return
        self._last_publish = now
        self._emit(self.assemble(self.buffer))

    def finalize(self, final_text: Optional[str] = None) -> Optional[str]:
        """Publish the complete result; returns None when cancelled."""

        if self._is_cancelled():
            return None
        text = self.buffer if final_text is None else final_text
        assembled = self.assemble(text)
        self._emit(assembled)
        return assembled

    def _emit(self, snapshot: str) -> None:
        self.publish_count += 1
        self._publish(snapshot)
