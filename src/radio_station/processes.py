"""Registry of every external process the station spawns."""

import logging
import subprocess
import threading
from typing import Sequence

logger = logging.getLogger(__name__)


def stop_process(proc: subprocess.Popen, timeout: float = 3.0, name: str = "process") -> None:
    """Terminate ``proc``, wait up to ``timeout``, then kill it."""
    if proc.poll() is not None:
        return

    try:
        proc.terminate()
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning(f"{name} (pid {proc.pid}) did not terminate, killing")
        proc.kill()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"{name} (pid {proc.pid}) survived SIGKILL")
    except ProcessLookupError:
        pass


class ProcessRegistry:
    """Tracks spawned processes so shutdown can sweep them all."""

    def __init__(self, shutdown_timeout: float = 3.0):
        self.shutdown_timeout = shutdown_timeout
        self._procs: list[subprocess.Popen] = []
        self._lock = threading.Lock()

    def spawn(self, cmd: Sequence[str], **kwargs) -> subprocess.Popen:
        """Start a process and track it.

        Raises:
            OSError: If the executable cannot be started
        """
        proc = subprocess.Popen(list(cmd), **kwargs)
        logger.debug(f"Spawned pid {proc.pid}: {' '.join(cmd)}")
        with self._lock:
            self._prune()
            self._procs.append(proc)
        return proc

    def _prune(self) -> None:
        self._procs = [p for p in self._procs if p.poll() is None]

    @property
    def alive(self) -> list[subprocess.Popen]:
        with self._lock:
            self._prune()
            return list(self._procs)

    def terminate_all(self) -> None:
        """Stop every still-running tracked process."""
        with self._lock:
            procs, self._procs = self._procs, []

        for proc in procs:
            if proc.poll() is None:
                logger.info(f"Terminating pid {proc.pid}")
                stop_process(proc, self.shutdown_timeout)
