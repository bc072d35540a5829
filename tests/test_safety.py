"""Tests for the Safety Gate."""

from __future__ import annotations

import pytest

from branchwise.models.config import BranchwiseConfig
from branchwise.models.plan import ForceMode
from branchwise.models.requests import (
    PublishRequest,
    RelocateRequest,
    SquashRequest,
    SyncRequest,
)
from branchwise.models.safety import Override, ReasonCode, VerdictLevel

from tests.conftest import gate_for, make_feature, make_repo, planner_for


def _evaluate(g, request, overrides=(), config=None):
    plan = planner_for(g, config).plan(request)
    return plan, gate_for(g, config).evaluate(plan, overrides)


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class TestPreconditions:
    def test_detached_head_blocks(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        plan = planner_for(g).plan(SquashRequest(count=2))
        g.checkout("feature", detach=True)
        verdict = gate_for(g).evaluate(plan, list(Override))
        assert verdict.level is VerdictLevel.BLOCK
        assert verdict.codes == (ReasonCode.DETACHED_HEAD,)
        assert "detached HEAD" in verdict.reasons[0].message

    def test_dirty_tree_blocks(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        g.dirty = True
        _, verdict = _evaluate(g, SquashRequest(count=2))
        assert verdict.codes == (ReasonCode.DIRTY_WORKTREE,)
        assert "not clean" in verdict.reasons[0].message

    def test_squash_ignores_untracked(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        g.untracked = True
        _, verdict = _evaluate(g, SquashRequest(count=2))
        assert verdict.allowed

    def test_relocate_counts_untracked(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        g.untracked = True
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.codes == (ReasonCode.DIRTY_WORKTREE,)

    def test_first_block_wins(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        plan = planner_for(g).plan(SquashRequest(count=2, message="x"))
        g.dirty = True
        g.checkout("feature", detach=True)
        verdict = gate_for(g).evaluate(plan)
        assert verdict.codes == (ReasonCode.DETACHED_HEAD,)

    def test_publish_does_not_need_clean_tree(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        g.dirty = True
        _, verdict = _evaluate(g, PublishRequest())
        assert verdict.allowed


# ---------------------------------------------------------------------------
# Lost and pushed commits
# ---------------------------------------------------------------------------


class TestLostCommits:
    def test_snip_drops_earlier_commits(self):
        g = make_repo()
        a, b = make_feature(g, "feature", ["Prep", "Fix"])
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.level is VerdictLevel.WARN
        reason = verdict.reason(ReasonCode.LOST_COMMITS)
        assert reason.commits == (a,)
        assert reason.override is Override.FORCE
        assert "would lose 1 commit(s)" in reason.message
        assert "--force" in reason.message

    def test_force_accepts(self):
        g = make_repo()
        make_feature(g, "feature", ["Prep", "Fix"])
        _, verdict = _evaluate(g, RelocateRequest(onto="main"), overrides=[Override.FORCE])
        assert verdict.allowed
        assert [r.code for r in verdict.accepted] == [ReasonCode.LOST_COMMITS]

    def test_unrelated_override_does_not_accept(self):
        g = make_repo()
        make_feature(g, "feature", ["Prep", "Fix"])
        _, verdict = _evaluate(
            g, RelocateRequest(onto="main"), overrides=[Override.REWRITE_PUSHED, Override.ALLOW_PROTECTED]
        )
        assert verdict.level is VerdictLevel.WARN
        assert verdict.codes == (ReasonCode.LOST_COMMITS,)
        assert verdict.accepted == ()

    def test_commit_on_another_branch_is_not_lost(self):
        g = make_repo()
        a, _ = make_feature(g, "feature", ["Prep", "Fix"])
        g.branch_from("backup", a)
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.allowed

    def test_commit_on_remote_is_not_lost(self):
        g = make_repo()
        a, _ = make_feature(g, "feature", ["Prep", "Fix"])
        g.remote_refs["origin/prep"] = a
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.reason(ReasonCode.LOST_COMMITS) is None

    def test_keep_original_loses_nothing(self):
        g = make_repo()
        make_feature(g, "feature", ["Prep", "Fix"])
        _, verdict = _evaluate(g, RelocateRequest(onto="main", keep_original=True))
        assert verdict.allowed

    def test_single_commit_snip_is_allowed(self):
        g = make_repo()
        make_feature(g, "feature", ["Fix"])
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.allowed

    def test_squash_loses_nothing(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b", "c"])
        _, verdict = _evaluate(g, SquashRequest(count=3))
        assert verdict.allowed


class TestPushedCommits:
    def test_squash_of_pushed_commits(self):
        g = make_repo()
        a, b = make_feature(g, "feature", ["a", "b"])
        g.track("feature")
        _, verdict = _evaluate(g, SquashRequest(count=2))
        assert verdict.codes == (ReasonCode.PUSHED_COMMITS,)
        reason = verdict.reasons[0]
        assert set(reason.commits) == {a, b}
        assert "force-push" in reason.message
        assert reason.override is Override.REWRITE_PUSHED

    def test_rewrite_pushed_accepts(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        g.track("feature")
        _, verdict = _evaluate(g, SquashRequest(count=2), overrides=["rewrite-pushed"])
        assert verdict.allowed

    def test_unpushed_tail_only(self):
        g = make_repo()
        a, b = make_feature(g, "feature", ["a", "b"])
        g.track("feature", at=a)
        g.commit_on("feature", "c")
        _, verdict = _evaluate(g, SquashRequest(count=2))
        assert verdict.allowed
        _, verdict = _evaluate(g, SquashRequest(count=3))
        assert verdict.reasons[0].commits == (a,)

    def test_force_leaves_pushed_warning_untouched(self):
        g = make_repo()
        a, b, c = make_feature(g, "feature", ["a", "b", "c"])
        g.track("feature", at=a)
        _, verdict = _evaluate(g, RelocateRequest(onto="main"), overrides=[Override.FORCE])
        assert verdict.level is VerdictLevel.WARN
        assert verdict.codes == (ReasonCode.PUSHED_COMMITS,)
        assert [r.code for r in verdict.accepted] == [ReasonCode.LOST_COMMITS]
        assert verdict.accepted[0].commits == (b,)

    def test_rebase_sync_checks_other_remote_refs(self):
        g = make_repo()
        make_feature(g, "feature", ["Mine"])
        g.track("feature", at="main")
        g.remote_refs["origin/feature"] = g.new_commit("Theirs", [g.branches["main"]])
        g.remote_refs["origin/shared"] = g.branches["feature"]
        _, verdict = _evaluate(g, SyncRequest(strategy="rebase"))
        assert verdict.codes == (ReasonCode.PUSHED_COMMITS,)


# ---------------------------------------------------------------------------
# Targets, remotes and protected branches
# ---------------------------------------------------------------------------


class TestTargets:
    def test_snip_onto_itself_blocks_regardless_of_overrides(self):
        g = make_repo()
        _, verdict = _evaluate(g, RelocateRequest(onto="main"), overrides=list(Override))
        assert verdict.level is VerdictLevel.BLOCK
        assert verdict.codes == (ReasonCode.SELF_TARGET,)
        assert "onto itself" in verdict.reasons[0].message

    def test_missing_remote_blocks(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        _, verdict = _evaluate(g, PublishRequest(remote="backup"))
        assert verdict.codes == (ReasonCode.REMOTE_NOT_FOUND,)
        assert "does not exist" in verdict.reasons[0].message

    def test_non_fast_forward_blocks_without_force(self):
        g = make_repo()
        make_feature(g, "feature", ["a"])
        g.track("feature", at="main")
        g.remote_refs["origin/feature"] = g.new_commit("Theirs", [g.branches["main"]])
        _, verdict = _evaluate(g, PublishRequest())
        assert verdict.codes == (ReasonCode.NON_FAST_FORWARD,)
        _, verdict = _evaluate(g, PublishRequest(force=ForceMode.FORCE_WITH_LEASE))
        assert verdict.allowed

    def test_force_push_to_protected_warns(self):
        g = make_repo()
        _, verdict = _evaluate(g, PublishRequest(force=ForceMode.FORCE))
        assert verdict.level is VerdictLevel.WARN
        assert verdict.codes == (ReasonCode.PROTECTED_BRANCH,)
        _, verdict = _evaluate(g, PublishRequest(force=ForceMode.FORCE), overrides=[Override.ALLOW_PROTECTED])
        assert verdict.allowed

    def test_plain_push_to_protected_is_allowed(self):
        g = make_repo()
        _, verdict = _evaluate(g, PublishRequest())
        assert verdict.allowed

    def test_protected_patterns_from_config(self):
        g = make_repo()
        make_feature(g, "release/1.0", ["a"])
        config = BranchwiseConfig(protected_branches=["release/*"])
        _, verdict = _evaluate(g, PublishRequest(force=ForceMode.FORCE), config=config)
        assert verdict.codes == (ReasonCode.PROTECTED_BRANCH,)


class TestVerdict:
    def test_fingerprint_recorded(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b"])
        plan, verdict = _evaluate(g, SquashRequest(count=2))
        assert verdict.plan_fingerprint == plan.fingerprint()

    def test_confirm_accepts_all_warnings(self):
        g = make_repo()
        make_feature(g, "feature", ["a", "b", "c"])
        g.track("feature", at=g.branches["feature"] + "~2")
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        assert verdict.level is VerdictLevel.WARN
        confirmed = verdict.confirm()
        assert confirmed.allowed
        assert confirmed.reasons == ()
        assert {r.code for r in confirmed.accepted} == {ReasonCode.LOST_COMMITS, ReasonCode.PUSHED_COMMITS}

    def test_block_cannot_be_confirmed(self):
        g = make_repo()
        _, verdict = _evaluate(g, RelocateRequest(onto="main"))
        with pytest.raises(ValueError):
            verdict.confirm()
