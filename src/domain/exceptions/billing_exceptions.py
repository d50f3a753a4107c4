from __future__ import annotations

from typing import Any

PROBLEM_BASE = "https://api.bill-insights.example/problems"


class DomainError(Exception):
    """Base class for all domain-layer exceptions.

    Carries HTTP-mapping metadata so the presentation layer can produce
    RFC 9457 Problem Details without knowing exception internals.
    """

    def __init__(
        self,
        detail: str = "",
        *,
        title: str = "Domain Error",
        status_code: int = 400,
        error_type: str = "about:blank",
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.title = title
        self.status_code = status_code
        self.error_type = error_type


class NotFoundError(DomainError):
    def __init__(self, detail: str = "", *, title: str = "Not Found") -> None:
        super().__init__(
            detail=detail,
            title=title,
            status_code=404,
            error_type=f"{PROBLEM_BASE}/not-found",
        )


class BillNotFoundError(NotFoundError):
    def __init__(self, user_id: str = "", period: Any = "") -> None:
        self.user_id = user_id
        self.period = str(period)
        super().__init__(
            detail=f"No bill for user {user_id} in period {period}",
            title="Bill Not Found",
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str = "") -> None:
        self.user_id = user_id
        super().__init__(detail=f"User not found: {user_id}", title="User Not Found")


class CatalogEntryNotFoundError(NotFoundError):
    def __init__(self, kind: Any = "", entry_id: str = "") -> None:
        self.kind = getattr(kind, "value", kind)
        self.entry_id = entry_id
        super().__init__(
            detail=f"Catalog entry not found: {self.kind} {entry_id}",
            title="Catalog Entry Not Found",
        )


class FindingNotFoundError(NotFoundError):
    def __init__(self, finding_id: Any = "") -> None:
        self.finding_id = str(finding_id)
        super().__init__(
            detail=f"Anomaly finding not found: {finding_id}",
            title="Finding Not Found",
        )


class NoDataError(DomainError):
    def __init__(self, user_id: str = "", period: Any = "", reason: str = "") -> None:
        self.user_id = user_id
        self.period = str(period)
        self.reason = reason
        detail = f"No data for user {user_id} in period {period}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(
            detail=detail,
            title="No Data",
            status_code=422,
            error_type=f"{PROBLEM_BASE}/no-data",
        )


class InvalidScenarioError(DomainError):
    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Invalid scenario: {reason}",
            title="Invalid Scenario",
            status_code=422,
            error_type=f"{PROBLEM_BASE}/invalid-scenario",
        )


class ComputationError(DomainError):
    def __init__(self, operation: str = "", reason: str = "") -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            detail=f"Computation failed in {operation}: {reason}",
            title="Computation Error",
            status_code=500,
            error_type=f"{PROBLEM_BASE}/computation",
        )
