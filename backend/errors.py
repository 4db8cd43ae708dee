"""
errors.py — Domain errors raised by the budget and expense services.
Each carries the HTTP status the route layer should answer with.
"""


class BudgetServiceError(Exception):
    """Base class for all service-level failures."""

    status_code = 400


class NotFoundError(BudgetServiceError):
    """The requested budget or expense does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: int) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class UnauthorizedError(BudgetServiceError):
    """The caller does not own the resource it tried to touch."""

    status_code = 403

    def __init__(self, action: str, resource: str) -> None:
        self.action = action
        self.resource = resource
        super().__init__(f"Not authorized to {action} this {resource}")


class DuplicateCategoryError(BudgetServiceError):
    """The user already has a budget for this category."""

    status_code = 409

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"Budget already exists for category: {category}")


def belongs_to(resource, user_id: int) -> bool:
    """Ownership check by user id, never by object identity."""
    return resource is not None and resource.user_id == user_id
