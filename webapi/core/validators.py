"""Input validation helpers for user payloads.

Every validator records into a ``ValidationErrors`` mapping instead of raising,
so a client sees all violations in one 422 response.
"""
from __future__ import annotations
from typing import Any, Optional

from webapi.core.models import CreateUserDto, UpdateUserDto, ValidationErrors

LOGIN_REQUIRED_MESSAGE = "Login is required"
LOGIN_FORMAT_MESSAGE = "Login should contain only letters or digits"


def is_login_valid(login: Any) -> bool:
    """Return True when login is a non-empty string of letters and digits.

    Digits are decimal digits only; numeric symbols such as "½" or "Ⅻ" are
    rejected even though ``str.isalnum`` accepts them.
    """
    return isinstance(login, str) and bool(login) and all(
        char.isalpha() or char.isdecimal() for char in login
    )


def validate_login(login: Any, errors: ValidationErrors) -> None:
    """Record a ``"login"`` error when the login rule is violated.

    Args:
        login: Raw login value from the payload
        errors: Mapping the message is added to
    """
    if login is None or login == "":
        errors.add("login", LOGIN_REQUIRED_MESSAGE)
    elif not is_login_valid(login):
        errors.add("login", LOGIN_FORMAT_MESSAGE)


def validate_name(value: Any, field: str, errors: ValidationErrors, required: bool = True) -> None:
    """Validate first/last name fields.

    Args:
        value: Name to validate
        field: Wire name used as the error key (e.g., "firstName")
        errors: Mapping the message is added to
        required: Whether an empty value is an error
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(field, f"{field} is required")
        return
    if not isinstance(value, str):
        errors.add(field, f"{field} must be a string")


def validate_create_user(dto: CreateUserDto, errors: Optional[ValidationErrors] = None) -> ValidationErrors:
    """Validate a POST payload. Only the login is mandatory."""
    errors = errors if errors is not None else ValidationErrors()
    validate_login(dto.login, errors)
    validate_name(dto.first_name, "firstName", errors, required=False)
    validate_name(dto.last_name, "lastName", errors, required=False)
    return errors


def validate_update_user(dto: UpdateUserDto, errors: Optional[ValidationErrors] = None) -> ValidationErrors:
    """Validate a PUT payload or the result of applying a PATCH document.

    Args:
        dto: Payload to check
        errors: Existing mapping to extend (e.g. patch-application errors)

    Returns:
        The mapping, empty when the payload is valid
    """
    errors = errors if errors is not None else ValidationErrors()
    validate_login(dto.login, errors)
    validate_name(dto.first_name, "firstName", errors)
    validate_name(dto.last_name, "lastName", errors)
    return errors
