"""Engine adapters implementing the GitBackend protocol."""

from branchwise.backend.gitpython import GitPythonBackend

__all__ = ["GitPythonBackend"]
