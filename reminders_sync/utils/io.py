"""
File helpers for the mapping store and vault documents.

Writes go to a sibling temp file that is then renamed over the target, so a
reader sees either the old content or the new content. A `<name>.lock`
companion file carries an advisory flock for the duration of each access.
"""

import contextlib
import errno
import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore


logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 8.0
_RETRY_DELAY = 0.05
_BUSY = (errno.EACCES, errno.EAGAIN)


def _expand(file_path: str) -> Path:
    return Path(os.path.expanduser(file_path))


def _is_current(fd: int, lock_path: Path) -> bool:
    """Whether `fd` is still the file linked at `lock_path`."""
    try:
        linked = os.stat(str(lock_path))
    except FileNotFoundError:
        return False
    held = os.fstat(fd)
    return (held.st_dev, held.st_ino) == (linked.st_dev, linked.st_ino)


def _acquire(lock_path: Path, mode: int, give_up_at: float, target: Path, timeout: float) -> int:
    """Open the lock file and flock it, retrying if it was removed meanwhile."""
    while True:
        fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            while True:
                try:
                    fcntl.flock(fd, mode | fcntl.LOCK_NB)
                    break
                except OSError as exc:
                    if exc.errno not in _BUSY:
                        raise
                    if time.monotonic() >= give_up_at:
                        raise TimeoutError(f"Lock on {target} not acquired within {timeout}s") from exc
                    time.sleep(_RETRY_DELAY)
            if _is_current(fd, lock_path):
                return fd
        except BaseException:
            os.close(fd)
            raise
        # The previous holder unlinked it; lock whatever is there now
        os.close(fd)


def _release(fd: int, lock_path: Path) -> None:
    """Drop the flock, removing the lock file when nobody else holds it."""
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        pass  # other readers still hold it
    else:
        with contextlib.suppress(OSError):
            lock_path.unlink()
    finally:
        os.close(fd)


@contextlib.contextmanager
def _locked(target: Path, exclusive: bool, timeout: float) -> Iterator[None]:
    """Hold a shared or exclusive flock on `target`'s lock file.

    The lock file is unlinked only by a holder with exclusive access, and a
    waiter that wakes up on an unlinked file starts over.
    """
    if fcntl is None:
        yield
        return

    lock_path = target.with_name(target.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH

    fd = _acquire(lock_path, mode, time.monotonic() + timeout, target, timeout)
    try:
        yield
    finally:
        _release(fd, lock_path)


def _replace_contents(target: Path, content: str, lock_timeout: float) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with _locked(target, exclusive=True, timeout=lock_timeout):
        fd, staging = tempfile.mkstemp(dir=str(target.parent), prefix=".tmp_", suffix=target.suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(staging, str(target))
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(staging)
            raise


def read_json(file_path: str, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> Optional[Any]:
    """
    Load JSON from `file_path` under a shared lock.

    A missing or blank file yields None. Malformed JSON raises
    json.JSONDecodeError and the caller decides how to recover.
    """
    source = _expand(file_path)
    if not source.exists():
        return None
    with _locked(source, exclusive=False, timeout=lock_timeout):
        raw = source.read_text(encoding="utf-8")
    return json.loads(raw) if raw.strip() else None


def safe_write_json(file_path: str, data: Dict[str, Any], indent: int = 2, *,
                    lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> bool:
    """Serialize `data` and replace `file_path` with it. Returns False on failure."""
    try:
        payload = json.dumps(data, indent=indent, ensure_ascii=False) + "\n"
        _replace_contents(_expand(file_path), payload, lock_timeout)
    except (OSError, TimeoutError, TypeError, ValueError) as exc:
        logger.error("Could not write JSON to %s: %s", file_path, exc)
        return False
    return True


def atomic_write(file_path: str, content: str, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> bool:
    """Replace `file_path` with `content` verbatim, line endings included."""
    try:
        _replace_contents(_expand(file_path), content, lock_timeout)
    except (OSError, TimeoutError) as exc:
        logger.error("Could not write %s: %s", file_path, exc)
        return False
    return True


def backup_file(file_path: str, suffix: str = ".backup") -> Optional[Path]:
    """Copy a file next to itself with the given suffix, replacing older copies."""
    source = _expand(file_path)
    if not source.exists():
        return None
    target = source.with_name(source.name + suffix)
    try:
        shutil.copy2(str(source), str(target))
    except OSError as exc:
        logger.error("Failed to back up %s: %s", file_path, exc)
        return None
    return target
