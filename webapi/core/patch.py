"""JSON Patch (RFC 6902) interpreter over UpdateUserDto.

The target is a fixed-shape dataclass rather than a free-form document, so
every path must resolve to one of its fields (``/login``, ``/firstName``,
``/lastName``). Failing operations are recorded into the shared
``ValidationErrors`` mapping and application continues with the next one;
the caller validates the resulting payload as a whole afterwards.

Usage:
    operations = parse_patch_document(request_json)
    errors = ValidationErrors()
    apply_patch(update_dto, operations, errors)
    validate_update_user(update_dto, errors)
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from webapi.core.models import UpdateUserDto, ValidationErrors

logger = logging.getLogger(__name__)

SUPPORTED_OPERATIONS = ("add", "remove", "replace", "move", "copy", "test")
PATCH_ERROR_KEY = "patch"

_MISSING = object()


class MalformedPatchError(ValueError):
    """Patch document is not a list of operation objects."""
    pass


@dataclass
class PatchOperation:
    op: str
    path: str
    value: Any = _MISSING
    from_path: Optional[str] = None

    @property
    def has_value(self) -> bool:
        return self.value is not _MISSING


def parse_patch_document(document: Any) -> List[PatchOperation]:
    """Turn a decoded JSON body into a list of operations.

    Only the document shape is checked here; unknown ops and bad paths are
    reported per operation by ``apply_patch``.

    Args:
        document: Decoded JSON body (expected: list of objects)

    Returns:
        Operations in document order

    Raises:
        MalformedPatchError: If the document or one of its items has the
            wrong shape
    """
    if not isinstance(document, list):
        raise MalformedPatchError("Patch document must be a JSON array")

    operations = []
    for index, item in enumerate(document):
        if not isinstance(item, dict):
            raise MalformedPatchError(f"Operation {index} must be an object")
        op = item.get("op")
        if not isinstance(op, str):
            raise MalformedPatchError(f"Operation {index} is missing 'op'")
        path = item.get("path")
        from_path = item.get("from")
        operations.append(PatchOperation(
            op=op.lower(),
            path=path if isinstance(path, str) else "",
            value=item.get("value", _MISSING),
            from_path=from_path if isinstance(from_path, str) else None,
        ))
    return operations


def resolve_path(path: Optional[str]) -> Optional[str]:
    """Map a JSON Pointer to an UpdateUserDto attribute name, or None."""
    if not path:
        return None
    pointer = path[1:] if path.startswith("/") else path
    if not pointer or "/" in pointer:
        return None
    token = pointer.replace("~1", "/").replace("~0", "~").lower()
    for wire, attr in UpdateUserDto.WIRE_NAMES.items():
        if wire.lower() == token:
            return attr
    return None


def _error_key(attr: Optional[str]) -> str:
    if attr is None:
        return PATCH_ERROR_KEY
    for wire, name in UpdateUserDto.WIRE_NAMES.items():
        if name == attr:
            return wire
    return PATCH_ERROR_KEY


def apply_patch(target: UpdateUserDto, operations: List[PatchOperation], errors: ValidationErrors) -> UpdateUserDto:
    """Apply operations in order, recording failures instead of aborting.

    Args:
        target: Payload mutated in place
        operations: Parsed operations
        errors: Mapping failures are recorded into

    Returns:
        The same target instance
    """
    for operation in operations:
        _apply_operation(target, operation, errors)
    return target


def _apply_operation(target: UpdateUserDto, operation: PatchOperation, errors: ValidationErrors) -> None:
    if operation.op not in SUPPORTED_OPERATIONS:
        errors.add(PATCH_ERROR_KEY, f"Unsupported operation '{operation.op}'")
        return

    attr = resolve_path(operation.path)
    if attr is None:
        errors.add(PATCH_ERROR_KEY, f"The target location specified by path '{operation.path}' was not found")
        return
    key = _error_key(attr)

    if operation.op in ("add", "replace", "test") and not operation.has_value:
        errors.add(key, f"Operation '{operation.op}' requires a value")
        return

    if operation.op in ("add", "replace"):
        setattr(target, attr, operation.value)
    elif operation.op == "remove":
        setattr(target, attr, None)
    elif operation.op == "test":
        if getattr(target, attr) != operation.value:
            errors.add(key, f"The current value '{getattr(target, attr)}' at path '{operation.path}' "
                            f"is not equal to the test value '{operation.value}'")
    else:
        source = resolve_path(operation.from_path)
        if source is None:
            errors.add(PATCH_ERROR_KEY, f"The source location specified by from '{operation.from_path}' was not found")
            return
        value = getattr(target, source)
        setattr(target, attr, value)
        if operation.op == "move" and source != attr:
            setattr(target, source, None)

    logger.debug(f"Applied patch op={operation.op} path={operation.path}")
