from domain.exceptions.billing_exceptions import (
    PROBLEM_BASE,
    BillNotFoundError,
    CatalogEntryNotFoundError,
    ComputationError,
    DomainError,
    FindingNotFoundError,
    InvalidScenarioError,
    NoDataError,
    NotFoundError,
    UserNotFoundError,
)

__all__ = [
    "PROBLEM_BASE",
    "BillNotFoundError",
    "CatalogEntryNotFoundError",
    "ComputationError",
    "DomainError",
    "FindingNotFoundError",
    "InvalidScenarioError",
    "NoDataError",
    "NotFoundError",
    "UserNotFoundError",
]
