"""Unit tests for LifetimeValidator."""

import pytest

from miraveja_verifier.application.context import VerificationContext
from miraveja_verifier.application.lifetime_validator import LifetimeValidator, lifetime_violation
from miraveja_verifier.domain import DiagnosticKind, Lifetime, VerifierSettings
from miraveja_verifier.infrastructure.testing import SnapshotBuilder

IOC012 = DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED
IOC013 = DiagnosticKind.SINGLETON_DEPENDS_ON_TRANSIENT
IOC014 = DiagnosticKind.BACKGROUND_SERVICE_WRONG_LIFETIME
IOC015 = DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION


def _validate(builder: SnapshotBuilder):
    context = VerificationContext.build(builder.build(), VerifierSettings())
    return LifetimeValidator().validate(context)


def _found(diagnostics):
    return [(diagnostic.kind, diagnostic.subject.name, diagnostic.related) for diagnostic in diagnostics]


class TestLifetimeRules:
    """Test cases for the lifetime rule table."""

    @pytest.mark.parametrize(
        "consumer, dependency, expected",
        [
            (Lifetime.SINGLETON, Lifetime.SCOPED, IOC012),
            (Lifetime.SINGLETON, Lifetime.TRANSIENT, IOC013),
            (Lifetime.SINGLETON, Lifetime.SINGLETON, None),
            (Lifetime.SCOPED, Lifetime.TRANSIENT, None),
            (Lifetime.SCOPED, Lifetime.SINGLETON, None),
            (Lifetime.TRANSIENT, Lifetime.SCOPED, None),
            (Lifetime.SINGLETON, None, None),
        ],
    )
    def test_lifetime_violation(self, consumer, dependency, expected):
        """Test that only longer-lived consumers of shorter-lived services are flagged."""
        assert lifetime_violation(consumer, dependency) == expected


class TestEdgeChecks:
    """Test cases for checks over dependency edges."""

    def test_singleton_depending_on_scoped(self):
        """Test the basic captive dependency."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Cache", Lifetime.SINGLETON, fields=["ISession"])
            .service("Session", Lifetime.SCOPED, implements=["ISession"])
        )

        assert _found(diagnostics) == [(IOC012, "Cache", "Session")]
        assert diagnostics[0].message == "Singleton service 'Cache' depends on Scoped service 'Session'"

    def test_singleton_depending_on_transient(self):
        """Test the transient variant."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Cache", Lifetime.SINGLETON, fields=["IClock"])
            .service("Clock", Lifetime.TRANSIENT, implements=["IClock"])
        )

        assert _found(diagnostics) == [(IOC013, "Cache", "Clock")]

    def test_compatible_lifetimes(self):
        """Test that shorter-lived consumers are fine."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Controller", Lifetime.TRANSIENT, fields=["ISession"])
            .service("Session", Lifetime.SCOPED, implements=["ISession"], fields=["IConfig"])
            .service("Config", Lifetime.SINGLETON, implements=["IConfig"])
        )

        assert diagnostics == []

    @pytest.mark.parametrize("target", ["Lazy<ISession>", "Func<ISession>", "IEnumerable<ISession>", "ISession[]"])
    def test_wrapped_dependencies_are_still_checked(self, target):
        """Test that deferred and collection edges obey lifetimes too."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Cache", Lifetime.SINGLETON, fields=[target])
            .service("Session", Lifetime.SCOPED, implements=["ISession"])
        )

        assert _found(diagnostics) == [(IOC012, "Cache", "Session")]

    def test_external_dependency_is_not_checked(self):
        """Test that external declarations are left out."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Cache", Lifetime.SINGLETON, fields=["ISession"])
            .service("Session", Lifetime.SCOPED, implements=["ISession"], is_external=True)
        )

        assert diagnostics == []

    def test_external_consumer_is_not_checked(self):
        """Test that an external singleton is never reported."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Cache", Lifetime.SINGLETON, fields=["ISession"], is_external=True)
            .service("Session", Lifetime.SCOPED, implements=["ISession"])
        )

        assert diagnostics == []


class TestInheritanceChain:
    """Test cases for inheritance chain checks."""

    def test_singleton_inheriting_from_scoped(self):
        """Test that a shorter-lived ancestor is reported."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Derived", Lifetime.SINGLETON, base="Base")
            .service("Base", Lifetime.SCOPED)
        )

        assert _found(diagnostics) == [(IOC015, "Derived", "Base")]
        assert diagnostics[0].message.endswith("inherits from 'Base', which has Scoped lifetime")

    def test_only_first_offending_ancestor_is_reported(self):
        """Test that one chain gives one diagnostic."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Derived", Lifetime.SINGLETON, base="Middle")
            .plain("Middle", base="Scoped")
            .service("Scoped", Lifetime.SCOPED, base="Transient")
            .service("Transient", Lifetime.TRANSIENT)
        )

        assert _found(diagnostics) == [(IOC015, "Derived", "Scoped")]

    def test_ancestor_with_scoped_dependency(self):
        """Test that an inherited scoped dependency is reported on the edge and on the chain."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Derived", Lifetime.SINGLETON, base="Base")
            .service("Base", Lifetime.SINGLETON, fields=["ISession"])
            .service("Session", Lifetime.SCOPED, implements=["ISession"])
        )

        assert _found(diagnostics) == [
            (IOC012, "Derived", "Session"),
            (IOC015, "Derived", "Base"),
            (IOC012, "Base", "Session"),
        ]
        assert diagnostics[1].message.endswith("which depends on Scoped service 'Session'")

    def test_non_singleton_descendants_are_not_chain_checked(self):
        """Test that only singletons get the chain check."""
        diagnostics = _validate(
            SnapshotBuilder()
            .service("Derived", Lifetime.SCOPED, base="Base")
            .service("Base", Lifetime.TRANSIENT)
        )

        assert diagnostics == []


class TestBackgroundServices:
    """Test cases for background service lifetimes."""

    def test_scoped_background_service(self):
        """Test that background services must be singletons."""
        diagnostics = _validate(SnapshotBuilder().service("Worker", Lifetime.SCOPED, is_background=True))

        assert _found(diagnostics) == [(IOC014, "Worker", None)]
        assert "has Scoped lifetime" in diagnostics[0].message

    def test_suppressed_background_warning(self):
        """Test that suppression silences the background check."""
        diagnostics = _validate(
            SnapshotBuilder().service(
                "Worker",
                Lifetime.TRANSIENT,
                is_background=True,
                suppress_lifetime_warnings=True,
            )
        )

        assert diagnostics == []

    def test_singleton_background_service(self):
        """Test that a singleton background service is fine."""
        assert _validate(SnapshotBuilder().service("Worker", is_background=True)) == []
