"""
ideaflow - Idea Workflow Client

Async client for an ideas -> approval -> tasks -> discussion -> audit trail
workflow kept on a CSRF-protected, OData-style list platform:
- Secure gateway with form-digest tokens, retry and per-resource serialization
- Typed domain services for ideas, tasks, discussions and the audit trail
- Reconciliation engine with server-confirmed status changes and one-level undo
"""

__version__ = "0.1.0"
