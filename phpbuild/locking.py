"""
Per-target lock file.

Two invocations building the same target would share one working tree
and one install prefix. The lock file records the owning process; a lock
left behind by a dead process is taken over.
"""

import getpass
import json
import logging
import os
import socket
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from phpbuild.errors import LockContentionError
from phpbuild.utils import utcnow


logger = logging.getLogger("phpbuild")


@dataclass(frozen=True)
class LockPayload:
    pid: int
    host: str
    user: str
    run_id: str
    acquired_at_utc: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)


def _pid_active(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True


def _read_payload(lock_file: Path) -> dict:
    try:
        raw = lock_file.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return {}
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _remove_stale(lock_file: Path) -> None:
    lock_file.unlink(missing_ok=True)


class TargetLock:
    """Context manager holding the lock for one target."""

    def __init__(self, lock_file: Path, run_id: str):
        self.lock_file = Path(lock_file)
        self.run_id = run_id
        self.payload: Optional[LockPayload] = None

    def acquire(self) -> LockPayload:
        """
        Create the lock file exclusively.

        A lock left by a dead process is removed and creation retried
        once; losing that retry to another invocation is contention.

        Raises:
            LockContentionError: A live process holds the lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        self.payload = LockPayload(
            pid=os.getpid(),
            host=socket.gethostname(),
            user=getpass.getuser(),
            run_id=self.run_id,
            acquired_at_utc=utcnow().isoformat(),
        )
        if self._create():
            return self.payload

        prior = _read_payload(self.lock_file)
        prior_pid = prior.get("pid", 0)
        prior_pid = prior_pid if isinstance(prior_pid, int) else 0
        if _pid_active(prior_pid) and prior_pid != os.getpid():
            raise self._contention(prior)

        logger.warning(
            f"Replacing stale lock {self.lock_file}",
            extra={"event": "stale_lock_replaced", "metadata": prior},
        )
        _remove_stale(self.lock_file)
        if not self._create():
            raise self._contention(_read_payload(self.lock_file))
        return self.payload

    def _create(self) -> bool:
        try:
            fd = os.open(self.lock_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.payload.to_json() + "\n")
        return True

    def _contention(self, prior: dict) -> LockContentionError:
        return LockContentionError(
            f"Another build holds {self.lock_file}: pid={prior.get('pid', '?')} "
            f"host={prior.get('host', '?')} user={prior.get('user', '?')}"
        )

    def release(self) -> None:
        """Remove the lock file if this run still owns it."""
        payload = _read_payload(self.lock_file)
        if payload and str(payload.get("run_id", "")) != self.run_id:
            return
        self.lock_file.unlink(missing_ok=True)
        self.payload = None

    def __enter__(self) -> "TargetLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()
