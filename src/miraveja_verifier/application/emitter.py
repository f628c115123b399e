"""Application layer - Diagnostic deduplication, severity and ordering."""

import logging
from typing import Dict, Iterable, List, Tuple

from miraveja_verifier.domain import Diagnostic, DiagnosticKind, VerifierSettings

logger = logging.getLogger(__name__)


class DiagnosticEmitter:
    """Merges per-stage diagnostic buffers into the final, deterministic output.

    The same logical violation may be found through several paths (a direct
    edge and an inherited one, or two resolution stages). Diagnostics are
    therefore keyed by ``(kind, subject, related)`` and only the first one is
    kept. The configured severity is then applied, disabled kinds are dropped,
    and the result is sorted by subject declaration order and kind.

    Attributes:
        _settings: Severity and enablement configuration.
    """

    def __init__(self, settings: VerifierSettings) -> None:
        self._settings = settings

    def emit(self, buffers: Iterable[Iterable[Diagnostic]]) -> List[Diagnostic]:
        """Produce the final diagnostic list.

        Args:
            buffers: Diagnostic buffers, one per stage, in a fixed stage order.

        Returns:
            Deduplicated, filtered and sorted diagnostics.

        Example:
            >>> emitter = DiagnosticEmitter(VerifierSettings())
            >>> emitter.emit([[duplicate], [duplicate]]) == [duplicate]
            True
        """
        if not self._settings.diagnostics_enabled:
            logger.debug("Diagnostics are disabled, emitting nothing")
            return []

        unique: Dict[Tuple[DiagnosticKind, str, object], Diagnostic] = {}
        for buffer in buffers:
            for diagnostic in buffer:
                unique.setdefault(diagnostic.dedupe_key, diagnostic)

        emitted: List[Diagnostic] = []
        for diagnostic in unique.values():
            if not self._settings.is_enabled(diagnostic.kind):
                continue
            severity = self._settings.severity_for(diagnostic.kind)
            if severity != diagnostic.severity:
                diagnostic = diagnostic.model_copy(update={"severity": severity})
            emitted.append(diagnostic)

        emitted.sort(key=lambda diagnostic: diagnostic.sort_key)
        logger.debug("Emitting %d diagnostics", len(emitted))
        return emitted
