"""Unit tests for DiagnosticEmitter."""

from miraveja_verifier.application.emitter import DiagnosticEmitter
from miraveja_verifier.domain import (
    DiagnosticKind,
    Identity,
    Lifetime,
    ServiceDeclaration,
    Severity,
    VerifierSettings,
    make_diagnostic,
)


def _declaration(name: str, order: int) -> ServiceDeclaration:
    return ServiceDeclaration(identity=Identity(name=name), lifetime=Lifetime.SINGLETON, order=order)


class TestDiagnosticEmitter:
    """Test cases for DiagnosticEmitter class."""

    def test_duplicates_across_buffers_are_merged(self):
        """Test that the same violation found by two paths is emitted once."""
        cache = _declaration("Cache", 0)
        first = make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, cache, related="Session")
        second = make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, cache, related="Session")

        emitted = DiagnosticEmitter(VerifierSettings()).emit([[first], [second]])

        assert emitted == [first]

    def test_different_related_names_are_kept(self):
        """Test that the related name is part of the identity of a diagnostic."""
        cache = _declaration("Cache", 0)
        diagnostics = [
            make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, cache, related="Session"),
            make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, cache, related="Tenant"),
        ]

        assert len(DiagnosticEmitter(VerifierSettings()).emit([diagnostics])) == 2

    def test_sorted_by_declaration_order_then_code(self):
        """Test that output order does not depend on buffer order."""
        early, late = _declaration("Early", 0), _declaration("Late", 1)
        cycle = make_diagnostic(DiagnosticKind.CIRCULAR_DEPENDENCY, early, related="Early -> Early", path="x")
        missing = make_diagnostic(DiagnosticKind.NO_IMPLEMENTATION_FOUND, early, related="IMissing")
        captive = make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, late, related="Session")

        emitted = DiagnosticEmitter(VerifierSettings()).emit([[captive], [cycle], [missing]])

        assert emitted == [missing, cycle, captive]

    def test_configured_severity_is_applied(self):
        """Test that severities come from settings."""
        diagnostic = make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, _declaration("Cache", 0), related="S")
        settings = VerifierSettings(lifetime_validation_severity="warning")

        emitted = DiagnosticEmitter(settings).emit([[diagnostic]])

        assert emitted[0].severity == Severity.WARNING
        assert emitted[0].message == diagnostic.message

    def test_disabled_kinds_are_dropped(self):
        """Test filtering of disabled kinds."""
        cache = _declaration("Cache", 0)
        diagnostics = [
            make_diagnostic(DiagnosticKind.SINGLETON_DEPENDS_ON_TRANSIENT, cache, related="Clock"),
            make_diagnostic(DiagnosticKind.NO_IMPLEMENTATION_FOUND, cache, related="IMissing"),
        ]

        emitted = DiagnosticEmitter(VerifierSettings(disabled_kinds="IOC013")).emit([diagnostics])

        assert [diagnostic.kind for diagnostic in emitted] == [DiagnosticKind.NO_IMPLEMENTATION_FOUND]

    def test_master_switch(self):
        """Test that disabling diagnostics emits nothing."""
        diagnostic = make_diagnostic(DiagnosticKind.NO_IMPLEMENTATION_FOUND, _declaration("Api", 0), related="IMissing")

        assert DiagnosticEmitter(VerifierSettings(diagnostics_enabled=False)).emit([[diagnostic]]) == []
