"""End-to-end pipeline tests through Workflow against FakeGit."""

from __future__ import annotations

import pytest

from branchwise import Workflow
from branchwise.exceptions import (
    ExecutionError,
    PreconditionError,
    SafetyBlockError,
    SafetyWarnError,
)
from branchwise.models.config import BranchwiseConfig
from branchwise.models.refs import RefScope
from branchwise.models.requests import PublishRequest, RelocateRequest, SquashRequest, SyncRequest
from branchwise.models.safety import Override, ReasonCode, VerdictLevel

from tests.conftest import make_feature, make_repo


def _wf(g, **config) -> Workflow:
    return Workflow(g, BranchwiseConfig(**config))


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_dry_run_never_mutates(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        outcome = _wf(g).run(RelocateRequest(onto="main"), dry_run=True)
        assert outcome.dry_run
        assert outcome.verdict.level is VerdictLevel.WARN
        assert g.calls == []

    def test_dry_run_returns_blocked_plan(self):
        g = make_repo()
        g.dirty = True
        make_feature(g, "feature", ["a", "b"])
        outcome = _wf(g).run(SquashRequest(count=2), dry_run=True)
        assert outcome.verdict.blocked
        assert outcome.plan.render()
        assert g.calls == []

    def test_sync_dry_run_still_fetches(self):
        g = make_repo()
        _wf(g).run(SyncRequest(patterns=["main"]), dry_run=True)
        assert g.mutations() == ["fetch"]

    def test_fetch_disabled(self):
        g = make_repo()
        _wf(g).run(SyncRequest(patterns=["main"]), dry_run=True, fetch=False)
        _wf(g, fetch=False).run(SyncRequest(patterns=["main"]), dry_run=True)
        assert g.calls == []


# ---------------------------------------------------------------------------
# Real runs
# ---------------------------------------------------------------------------


class TestRun:
    def test_squash(self):
        g = make_repo()
        make_feature(g, "feature", ["Start", "More"])
        outcome = _wf(g).run(SquashRequest(count=2, message="Feature"))
        assert outcome.report.succeeded
        assert g.message_of("feature") == "Feature"

    def test_precondition_raises_before_mutation(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        g.checkout("feature", detach=True)
        g.calls.clear()
        with pytest.raises(PreconditionError) as exc_info:
            _wf(g).run(SquashRequest(count=2))
        assert exc_info.value.verdict.codes == (ReasonCode.DETACHED_HEAD,)
        assert exc_info.value.exit_code == 3
        assert g.calls == []

    def test_detached_head_reported_before_planning_errors(self):
        g = make_repo()
        g.checkout("main", detach=True)
        g.calls.clear()
        with pytest.raises(PreconditionError) as exc_info:
            _wf(g).prepare(RelocateRequest(onto="main"), fetch=False)
        assert exc_info.value.verdict.codes == (ReasonCode.DETACHED_HEAD,)
        with pytest.raises(PreconditionError):
            _wf(g).run(SquashRequest(count=10), dry_run=True)
        assert g.calls == []

    def test_other_block(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        with pytest.raises(SafetyBlockError) as exc_info:
            _wf(g).run(PublishRequest(remote="upstream"))
        assert not isinstance(exc_info.value, PreconditionError)
        assert g.calls == []

    def test_warning_requires_confirmation(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        with pytest.raises(SafetyWarnError):
            _wf(g).run(RelocateRequest(onto="main"))
        with pytest.raises(SafetyWarnError):
            _wf(g).run(RelocateRequest(onto="main"), confirm=lambda plan, verdict: False)
        assert g.calls == []

    def test_confirmed_warning_runs(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        seen = []

        def confirm(plan, verdict):
            seen.append(verdict.codes)
            return True

        outcome = _wf(g).run(RelocateRequest(onto="main"), confirm=confirm)
        assert seen == [(ReasonCode.LOST_COMMITS,)]
        assert outcome.report.succeeded
        assert outcome.verdict.level is VerdictLevel.ALLOW
        assert g.parents_of("feature") == [g.branches["main"]]

    def test_override_skips_confirmation(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        outcome = _wf(g).run(RelocateRequest(onto="main"), overrides=["force"])
        assert outcome.report.succeeded
        assert [r.override for r in outcome.report.accepted_risks] == [Override.FORCE]

    def test_failed_step_raises_with_report(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        tip = g.branches["feature"]
        g.fail("commit")
        with pytest.raises(ExecutionError) as exc_info:
            _wf(g).run(SquashRequest(count=2))
        report = exc_info.value.report
        assert report.rollback_succeeded
        assert g.branches["feature"] == tip

    def test_prepare_then_proceed(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        wf = _wf(g)
        outcome = wf.prepare(SquashRequest(count=2))
        assert g.calls == []
        done = wf.proceed(outcome)
        assert done.report.succeeded


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_status_defaults_to_current_branch(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        states = _wf(g).status()
        assert [s.name for s in states] == ["feature"]

    def test_status_with_patterns(self):
        g = make_repo()
        make_feature(g, "feat-a", ["a"])
        make_feature(g, "feat-b", ["b"])
        states = _wf(g).status(["feat-*"])
        assert [s.name for s in states] == ["feat-a", "feat-b"]

    def test_select_remote_scope(self):
        g = make_repo()
        refs = _wf(g).select(["*"], scope=RefScope.REMOTE)
        assert [r.name for r in refs] == ["origin/main"]
