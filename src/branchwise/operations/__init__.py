"""Branchwise operations: resolve, classify, plan, gate, execute."""
