from typing import Dict, Optional


class MenuLinkError(Exception):
    """Base class for errors raised by the storefront."""


class ValidationError(MenuLinkError):
    """Client-side validation failure, reported per form field."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: message})


class BackendError(MenuLinkError):
    """A dashboard call to the backend failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SignInRequired(MenuLinkError):
    pass


class OnboardingRequired(MenuLinkError):
    pass
