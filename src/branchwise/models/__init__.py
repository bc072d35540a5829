"""Domain models for Branchwise."""
