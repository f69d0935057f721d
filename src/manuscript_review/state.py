"""State machine for issue review decisions."""

from __future__ import annotations

from manuscript_review.models import Issue, IssueStatus

# Valid transitions: from_status -> set of allowed to_statuses
TRANSITIONS: dict[IssueStatus, set[IssueStatus]] = {
    IssueStatus.PENDING: {IssueStatus.ACCEPTED, IssueStatus.CUSTOM},
    IssueStatus.ACCEPTED: {IssueStatus.ACCEPTED, IssueStatus.CUSTOM, IssueStatus.PENDING},
    IssueStatus.CUSTOM: {IssueStatus.CUSTOM, IssueStatus.ACCEPTED, IssueStatus.PENDING},
}


class InvalidTransitionError(Exception):
    def __init__(self, from_status: IssueStatus, to_status: IssueStatus) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition: {from_status.value} -> {to_status.value}"
        )


def transition(issue: Issue, to: IssueStatus, custom_replacement: str | None = None) -> Issue:
    """Move an issue to a new status. Raises InvalidTransitionError if not allowed.

    ``custom_replacement`` is required for CUSTOM and dropped for every other
    status, so the payload can never outlive the custom decision.
    """
    allowed = TRANSITIONS.get(issue.status, set())
    if to not in allowed:
        raise InvalidTransitionError(issue.status, to)
    if to == IssueStatus.CUSTOM and custom_replacement is None:
        raise ValueError("custom_replacement is required for a custom decision")
    issue.status = to
    issue.custom_replacement = custom_replacement if to == IssueStatus.CUSTOM else None
    return issue


def can_transition(issue: Issue, to: IssueStatus) -> bool:
    """Check if a transition is valid without performing it."""
    allowed = TRANSITIONS.get(issue.status, set())
    return to in allowed
