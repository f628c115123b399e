"""Unit tests for LatestSnapshotRunner."""

import threading
from unittest.mock import MagicMock

from miraveja_verifier.application.runner import LatestSnapshotRunner
from miraveja_verifier.application.verifier import DependencyVerifier
from miraveja_verifier.domain import Lifetime, TypeFragment


class TestLatestSnapshotRunner:
    """Test cases for LatestSnapshotRunner class."""

    def test_runner_initialization(self):
        """Test that a new runner has no generation and no result."""
        runner = LatestSnapshotRunner()

        assert runner.generation == 0
        assert runner.latest is None

    def test_submit_returns_and_keeps_result(self):
        """Test a single submission."""
        runner = LatestSnapshotRunner()

        result = runner.submit([TypeFragment(name="Clock", lifetime=Lifetime.SINGLETON)])

        assert result is not None
        assert runner.latest is result
        assert runner.generation == 1

    def test_superseded_pass_is_discarded(self):
        """Test that a pass finishing after a newer submission returns None."""
        verifier = MagicMock(spec=DependencyVerifier)
        runner = LatestSnapshotRunner(verifier)
        older, newer = object(), object()
        results = {}

        def verify(source):
            if source is older:
                # A newer snapshot arrives while the older pass is running
                results["newer"] = runner.submit(newer)
                return "older result"
            return "newer result"

        verifier.verify.side_effect = verify

        assert runner.submit(older) is None
        assert results["newer"] == "newer result"
        assert runner.latest == "newer result"
        assert runner.generation == 2

    def test_concurrent_submissions_keep_latest(self):
        """Test that concurrent submissions leave exactly one latest result."""
        runner = LatestSnapshotRunner()
        fragments = [TypeFragment(name="Clock", lifetime=Lifetime.SINGLETON)]
        returned = []

        def submit():
            returned.append(runner.submit(fragments))

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert runner.generation == 8
        assert runner.latest is not None
        assert runner.latest in returned
