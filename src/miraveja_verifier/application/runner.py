"""Application layer - Latest-snapshot-wins execution."""

import logging
import threading
from typing import Iterable, Optional, Union

from miraveja_verifier.application.verifier import DependencyVerifier, VerificationResult
from miraveja_verifier.domain import Snapshot, TypeFragment

logger = logging.getLogger(__name__)


class LatestSnapshotRunner:
    """Runs verifications where a newer snapshot supersedes older ones.

    Every submission takes a new generation number. A pass is never
    interrupted; when it finishes after a newer submission was made, its
    result is discarded.

    Attributes:
        _verifier: Verifier running each pass.
        _lock: Guards the generation counter and the latest result.
        _generation: Number of the most recent submission.
        _latest: Result of the most recent pass that was not superseded.
    """

    def __init__(self, verifier: Optional[DependencyVerifier] = None) -> None:
        self._verifier = verifier or DependencyVerifier()
        self._lock = threading.Lock()
        self._generation = 0
        self._latest: Optional[VerificationResult] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def latest(self) -> Optional[VerificationResult]:
        with self._lock:
            return self._latest

    def submit(self, source: Union[Snapshot, Iterable[TypeFragment]]) -> Optional[VerificationResult]:
        """Verify a snapshot unless a newer one arrives first.

        Args:
            source: A snapshot or raw fragments.

        Returns:
            The result, or None when the pass was superseded while running.

        Example:
            >>> runner = LatestSnapshotRunner()
            >>> runner.submit(fragments).diagnostics
            ()
        """
        with self._lock:
            self._generation += 1
            generation = self._generation

        result = self._verifier.verify(source)

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding result of generation %d, superseded by %d", generation, self._generation)
                return None
            self._latest = result
        return result
