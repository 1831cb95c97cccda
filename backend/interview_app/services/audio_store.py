from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import time
from typing import Callable
import uuid

from interview_app.system_metrics import increment_metric
from interview_core.config import AUDIO_MAX_AGE_SEC, AUDIO_SWEEP_INTERVAL_SEC, AUDIO_TEMP_DIR

logger = logging.getLogger("interview_app.services.audio_store")

AUDIO_SUFFIX = ".mp3"


class AudioFileStore:
    """
    Transient directory for rendered interviewer audio.
    Files older than max_age_sec are evicted by a background sweep.
    """

    def __init__(
        self,
        root: Path | str = AUDIO_TEMP_DIR,
        max_age_sec: float = AUDIO_MAX_AGE_SEC,
        sweep_interval_sec: float = AUDIO_SWEEP_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root)
        self.max_age_sec = float(max_age_sec)
        self.sweep_interval_sec = float(sweep_interval_sec)
        self._clock = clock
        self._sweep_task: asyncio.Task | None = None

    def ensure_dir(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        return self.root / filename

    def _write_sync(self, data: bytes) -> Path:
        self.ensure_dir()
        path = self.path_for(f"{uuid.uuid4()}{AUDIO_SUFFIX}")
        path.write_bytes(data)
        return path

    async def write(self, data: bytes) -> Path:
        return await asyncio.to_thread(self._write_sync, data)

    def cleanup_old_files(self) -> int:
        if not self.root.exists():
            return 0

        now_ts = self._clock()
        deleted = 0
        for path in self.root.iterdir():
            if path.suffix != AUDIO_SUFFIX:
                continue
            try:
                age = now_ts - path.stat().st_mtime
                if age > self.max_age_sec:
                    path.unlink()
                    deleted += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Audio cleanup skipped file | file=%s err=%s", path.name, exc)

        if deleted > 0:
            increment_metric("audio_files_swept", deleted)
            logger.info("Cleaned up old audio files | deleted=%s", deleted)
        return deleted

    def delete(self, filename: str) -> None:
        try:
            self.path_for(filename).unlink()
        except FileNotFoundError:
            pass

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.cleanup_old_files)
            except Exception as exc:
                logger.warning("Audio cleanup sweep failed | err=%s", exc)
            await asyncio.sleep(self.sweep_interval_sec)

    def start_sweeper(self) -> asyncio.Task:
        self.ensure_dir()
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(
                "Periodic audio cleanup started | dir=%s interval_sec=%s max_age_sec=%s",
                self.root,
                self.sweep_interval_sec,
                self.max_age_sec,
            )
        return self._sweep_task

    async def stop_sweeper(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        finally:
            self._sweep_task = None
