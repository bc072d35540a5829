"""Shared test fixtures for Branchwise.

Repositories are FakeGit instances; test_gitpython_integration.py
builds real ones with the git binary.
"""

from __future__ import annotations

import pytest

from branchwise.models.config import BranchwiseConfig
from branchwise.operations.classify import take_snapshot
from branchwise.operations.planner import Planner
from branchwise.operations.safety import SafetyGate

from tests.fakes import FakeGit


def make_repo() -> FakeGit:
    """main with two commits, published to origin/main, checked out."""
    g = FakeGit()
    g.commit_on("main", "Initial commit", files=("README.md",))
    g.commit_on("main", "Add setup", files=("setup.cfg",))
    g.add_remote("origin", default_branch="main")
    g.track("main")
    g.checkout("main")
    g.calls.clear()
    return g


def make_feature(g: FakeGit, name: str, messages: list[str], start: str = "main") -> list[str]:
    """Create ``name`` from ``start`` with one commit per message and check it out."""
    g.branch_from(name, start)
    shas = [g.commit_on(name, msg, files=(f"{msg.lower().replace(' ', '_')}.py",)) for msg in messages]
    g.head_branch, g.detached_at = name, None
    return shas


def planner_for(g: FakeGit, config: BranchwiseConfig | None = None) -> Planner:
    return Planner(g, config or BranchwiseConfig(), take_snapshot(g))


def gate_for(g: FakeGit, config: BranchwiseConfig | None = None) -> SafetyGate:
    return SafetyGate(g, config or BranchwiseConfig(), take_snapshot(g))


@pytest.fixture
def repo() -> FakeGit:
    return make_repo()


@pytest.fixture
def config() -> BranchwiseConfig:
    return BranchwiseConfig()
