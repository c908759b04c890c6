"""Audit logging package."""

from household_budget.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
