"""
Workflow errors. Raised by domain and infrastructure, converted to OperationResult by use cases.
"""


class WorkflowError(ValueError):
    """Base class. `str(exc)` is safe to show to the user."""

    code = "workflow_error"


class PreconditionError(WorkflowError):
    """Rejected before any write: wrong status, unassignable resource, unanswered items..."""

    code = "precondition_failed"


class PolicyViolation(PreconditionError):
    """Operation forbidden for the route's current status (edit/delete outside Pending)."""

    code = "policy_violation"


class ConcurrencyError(WorkflowError):
    """Document changed after it was read. Reload and retry."""

    code = "conflict"


class PartialWriteError(WorkflowError):
    """A multi-document write failed midway; earlier writes were compensated."""

    code = "partial_write"


class NotFoundError(LookupError):
    code = "not_found"

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection} {doc_id!r} not found")

    def __str__(self) -> str:
        return self.args[0]
