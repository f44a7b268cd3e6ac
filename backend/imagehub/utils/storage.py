"""
Temporary artifact storage: uploads and produced outputs on the local disk,
reclaimed by an age-based sweep.
"""
import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional


logger = logging.getLogger(__name__)

SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB']
MAX_NAME_ATTEMPTS = 1000


class ArtifactNotFoundError(Exception):
    """Raised when a named artifact does not exist in the output directory."""


def generate_unique_filename(original_name: str, extension: Optional[str] = None) -> str:
    """
    Build a random filename that keeps (or replaces) the original extension.

    Args:
        original_name: Client-supplied filename, used only for its extension
        extension: Replacement extension including the dot

    Returns:
        "<uuid4 hex><ext>"
    """
    ext = extension if extension is not None else Path(original_name or '').suffix.lower()
    return f"{uuid.uuid4().hex}{ext}"


def format_file_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 126412 -> "123.45 KB"."""
    if num_bytes <= 0:
        return "0 Bytes"
    index = 0
    while num_bytes >= 1024 ** (index + 1) and index < len(SIZE_UNITS) - 1:
        index += 1
    value = round(num_bytes / (1024 ** index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {SIZE_UNITS[index]}"


class ArtifactStore:
    """
    Working-directory store for uploads and outputs.

    Uploads are named by random id; outputs keep a suggested name and are
    uniquified with " (1)", " (2)", ... instead of being overwritten.
    """

    def __init__(self, upload_dir, output_dir):
        self.upload_dir = Path(upload_dir)
        self.output_dir = Path(output_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_upload(self, file_storage) -> Path:
        """Persist a werkzeug FileStorage under a random name in the upload directory."""
        path = self.upload_dir / generate_unique_filename(file_storage.filename)
        file_storage.stream.seek(0)
        try:
            file_storage.save(str(path))
        except OSError:
            self._discard(path)
            raise
        return path

    @contextmanager
    def upload(self, file_storage) -> Iterator[Path]:
        """
        Save an upload for the duration of a block and delete it afterwards,
        whether the block succeeds or raises.
        """
        path = self.save_upload(file_storage)
        try:
            yield path
        finally:
            self._discard(path)

    def write(self, data: bytes, suggested_name: str) -> str:
        """
        Write ``data`` to the output directory.

        Args:
            data: Artifact payload, must not be empty
            suggested_name: Preferred filename; uniquified on collision

        Returns:
            The filename actually used
        """
        if not data:
            raise ValueError("Refusing to store an empty artifact")

        safe_name = Path(suggested_name).name or generate_unique_filename('', '.bin')
        stem, suffix = Path(safe_name).stem, Path(safe_name).suffix

        for counter in range(MAX_NAME_ATTEMPTS):
            name = safe_name if counter == 0 else f"{stem} ({counter}){suffix}"
            path = self.output_dir / name
            try:
                fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
            except FileExistsError:
                continue
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
            except OSError:
                self._discard(path)
                raise
            return name

        raise FileExistsError(f"Could not find a free name for {safe_name}")

    def resolve(self, name: str) -> Path:
        """Map an artifact name to its path, refusing names outside the output directory."""
        candidate = (self.output_dir / name).resolve()
        root = self.output_dir.resolve()
        if candidate.parent != root or not candidate.is_file():
            raise ArtifactNotFoundError(f"File not found: {name}")
        return candidate

    def read(self, name: str) -> bytes:
        return self.resolve(name).read_bytes()

    def delete(self, name: str) -> bool:
        try:
            path = self.resolve(name)
        except ArtifactNotFoundError:
            return False
        return self._discard(path)

    def sweep(self, max_age_seconds: float, now: Optional[float] = None) -> int:
        """
        Delete files older than ``max_age_seconds`` from both directories.

        A file that disappears between listing and deletion is skipped.

        Returns:
            Number of files removed
        """
        now = time.time() if now is None else now
        removed = 0
        for directory in (self.upload_dir, self.output_dir):
            try:
                entries = list(directory.iterdir())
            except FileNotFoundError:
                continue
            for path in entries:
                try:
                    age = now - path.stat().st_mtime
                except FileNotFoundError:
                    continue
                if age <= max_age_seconds or not path.is_file():
                    continue
                if self._discard(path):
                    removed += 1
                    logger.info(f'Cleaned up old file: {path.name}')
        return removed

    def _discard(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f'Error deleting {path}: {e}')
            return False


class CleanupScheduler:
    """Runs ``ArtifactStore.sweep`` on a background daemon thread."""

    def __init__(self, store: ArtifactStore, interval_seconds: float, max_age_seconds: float):
        self.store = store
        self.interval_seconds = interval_seconds
        self.max_age_seconds = max_age_seconds
        self.thread: Optional[threading.Thread] = None
        self.stop_flag = threading.Event()

    @property
    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self.stop_flag.clear()
        self.thread = threading.Thread(target=self._worker, name='artifact-cleanup', daemon=True)
        self.thread.start()

    def stop(self, timeout: Optional[float] = None):
        self.stop_flag.set()
        if self.thread is not None:
            self.thread.join(timeout)
        self.thread = None

    def run_once(self) -> int:
        try:
            return self.store.sweep(self.max_age_seconds)
        except Exception as e:
            logger.error(f'Cleanup sweep failed: {e}', exc_info=True)
            return 0

    def _worker(self):
        while not self.stop_flag.wait(self.interval_seconds):
            self.run_once()
