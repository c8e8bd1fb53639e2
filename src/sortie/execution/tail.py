"""Transcript tailer that watches for the assistant's completion signal.

The assistant records a ``task_complete`` tool call in its transcript
when it believes it is done. The tailer locates the session directory
created or touched after it started, then polls events.jsonl for new
complete lines and reports the first one carrying the signal.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from sortie.models.config import default_session_root
from sortie.transcript.reader import (
    EVENTS_FILENAME,
    SessionNotFoundError,
    find_latest_session,
)

logger = logging.getLogger(__name__)

COMPLETION_MARKER = '"task_complete"'
POLL_INTERVAL_SECONDS = 1.0


class TranscriptTailer:
    """Incremental reader of the newest session transcript.

    Args:
        session_root: Root holding session directories.
        since: POSIX timestamp; sessions not touched since then are
            ignored so a stale session's completion is never picked up.
        poll_interval: Seconds between polls.
    """

    def __init__(
        self,
        session_root: Path | None = None,
        since: float | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self.session_root = session_root or default_session_root()
        self.since = time.time() if since is None else since
        self.poll_interval = poll_interval
        self.session_id: str | None = None
        self._offset = 0
        self._partial = b""

    @property
    def events_file(self) -> Path | None:
        if self.session_id is None:
            return None
        return self.session_root / self.session_id / EVENTS_FILENAME

    def _locate(self) -> Path | None:
        if self.session_id is None:
            try:
                session_id = find_latest_session(self.session_root, since=self.since)
            except SessionNotFoundError:
                return None
            if not (self.session_root / session_id / EVENTS_FILENAME).exists():
                return None
            self.session_id = session_id
            logger.debug("Tailing session %s", session_id)
        return self.events_file

    def read_new_lines(self) -> list[str]:
        """Return complete lines appended since the last call."""
        path = self._locate()
        if path is None:
            return []
        try:
            with path.open("rb") as f:
                f.seek(self._offset)
                chunk = f.read()
        except OSError:
            return []
        if not chunk:
            return []
        self._offset += len(chunk)
        data = self._partial + chunk
        *complete, self._partial = data.split(b"\n")
        return [line.decode("utf-8", errors="replace") for line in complete]

    def poll(self) -> bool:
        """Check new lines once; True if any carries the completion signal."""
        return any(COMPLETION_MARKER in line for line in self.read_new_lines())

    async def wait_for_completion(self) -> None:
        """Poll until a new completion signal appears.

        Safe to call again after it returns; only lines appended after the
        previous signal are considered.
        """
        while not self.poll():
            await asyncio.sleep(self.poll_interval)
        logger.info("Completion signal seen in session %s", self.session_id)
