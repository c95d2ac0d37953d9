"""Request handling for the users resource.

Each public method implements one row of the HTTP table: it receives a parsed
``UserRequest``, talks to the repository and returns an ``ApiResult`` the web
layer renders in the negotiated format. Nothing here imports Flask.

Status decision table:
    get_user_by_id          200 | 404 (unknown or unparsable id)
    get_users               200 + X-Pagination
    create_user             201 + Location | 400 (no body) | 422
    update_user             201 (inserted) | 204 (replaced) | 400 (no body / bad id) | 422
    partially_update_user   204 | 400 (no document) | 404 (unknown or unparsable id) | 422
    delete_user             204 | 404 (unknown or unparsable id)
    get_users_options       200 + Allow

Repository and link builder exceptions are not caught here; they reach the
application-wide 500 handler unchanged.

Concurrency: the exists-check and the following write are two separate
repository calls. Two writers racing on the same identity may interleave
between them; serializing them is the repository's job.
"""
from __future__ import annotations
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from webapi.core import audit
from webapi.core.mapper import UserMapper
from webapi.core.models import PaginationHeader, ValidationErrors
from webapi.core.patch import PatchOperation, apply_patch
from webapi.core.repository import UserRepository
from webapi.core.validators import validate_create_user, validate_update_user

logger = logging.getLogger(__name__)

DEFAULT_PAGE_NUMBER = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 20

PAGINATION_HEADER = "X-Pagination"
ALLOWED_COLLECTION_METHODS = ("POST", "GET", "OPTIONS")

# Route names understood by the link builder
GET_USER_ROUTE = "get_user_by_id"
GET_USERS_ROUTE = "get_users"

LinkBuilder = Callable[..., str]


@dataclass
class UserRequest:
    """Typed view of an incoming request.

    Attributes:
        user_id: Raw ``{id}`` path segment, parsed by the controller
        body: Decoded POST/PUT body, None when absent
        patch: Parsed PATCH document, None when absent
        page_number: ``pageNumber`` query parameter
        page_size: ``pageSize`` query parameter
        correlation_id: ``X-Correlation-Id`` header, for logs and audit
    """
    user_id: Optional[str] = None
    body: Optional[Dict[str, Any]] = None
    patch: Optional[List[PatchOperation]] = None
    page_number: Optional[int] = None
    page_size: Optional[int] = None
    correlation_id: Optional[str] = None


@dataclass
class ApiResult:
    """Status, body and headers of a response, independent of its encoding."""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


def parse_user_id(raw: Optional[str]) -> Optional[uuid.UUID]:
    """Parse a path identity, returning None when it is not a UUID."""
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except (ValueError, TypeError):
        return None


def clamp_page(page_number: Optional[int], page_size: Optional[int], max_page_size: int = MAX_PAGE_SIZE,
               default_page_size: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    """Snap paging parameters into range: page >= 1, 1 <= size <= max."""
    number = DEFAULT_PAGE_NUMBER if page_number is None else max(1, page_number)
    size = default_page_size if page_size is None else page_size
    return number, min(max_page_size, max(1, size))


class UsersController:
    """Users resource controller.

    Holds only references to its collaborators, assigned once at
    construction; no per-request state survives a call.
    """

    def __init__(
        self,
        repository: UserRepository,
        link_builder: LinkBuilder,
        mapper: type[UserMapper] = UserMapper,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self._repository = repository
        self._link_builder = link_builder
        self._mapper = mapper
        self._max_page_size = min(max_page_size, MAX_PAGE_SIZE)
        self._default_page_size = min(default_page_size, self._max_page_size)

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    def get_user_by_id(self, request: UserRequest) -> ApiResult:
        """GET/HEAD /{id}."""
        user_id = parse_user_id(request.user_id)
        if user_id is None:
            return ApiResult(404)

        entity = self._repository.find_by_id(user_id)
        if entity is None:
            return ApiResult(404)

        return ApiResult(200, self._mapper.to_user_dto(entity))

    def get_users(self, request: UserRequest) -> ApiResult:
        """GET / with pageNumber/pageSize clamped into range."""
        page_number, page_size = clamp_page(
            request.page_number,
            request.page_size,
            max_page_size=self._max_page_size,
            default_page_size=self._default_page_size,
        )
        page = self._repository.get_page(page_number, page_size)

        previous_link = None
        if page.has_previous:
            previous_link = self._link_builder(GET_USERS_ROUTE, pageNumber=page_number - 1, pageSize=page_size)
        next_link = None
        if page.has_next:
            next_link = self._link_builder(GET_USERS_ROUTE, pageNumber=page_number + 1, pageSize=page_size)

        header = PaginationHeader(
            previous_page_link=previous_link,
            next_page_link=next_link,
            total_count=page.total_count,
            page_size=page_size,
            current_page=page_number,
            total_pages=page.total_pages,
        )
        users = [self._mapper.to_user_dto(entity) for entity in page.items]
        return ApiResult(200, users, {PAGINATION_HEADER: json.dumps(header.to_dict())})

    def get_users_options(self, request: UserRequest) -> ApiResult:
        """OPTIONS /. No repository access."""
        return ApiResult(200, headers={"Allow": ", ".join(ALLOWED_COLLECTION_METHODS)})

    # ─────────────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────────────

    def create_user(self, request: UserRequest) -> ApiResult:
        """POST /.

        Returns:
            201 with the new identity as body and Location set, 400 when the
            body is absent, 422 when the login is empty or not alphanumeric
        """
        if request.body is None:
            return ApiResult(400)

        create_dto = self._mapper.create_dto_from_payload(request.body)
        errors = validate_create_user(create_dto)
        if not errors.is_valid:
            return self._unprocessable(errors)

        created = self._repository.insert(self._mapper.create_dto_to_entity(create_dto))
        logger.info(f"Created user {created.id} (login={created.login}, correlation_id={request.correlation_id})")
        audit.safe_log_user_event(
            "user_created",
            str(created.id),
            login=created.login,
            details={"correlation_id": request.correlation_id},
        )
        return self._created(created.id)

    def update_user(self, request: UserRequest) -> ApiResult:
        """PUT /{id}: full replacement, or insert under the client identity.

        Returns:
            201 when nothing existed at the identity, 204 when an existing
            user was replaced, 400 for a missing body or unparsable id, 422
            with every validation error otherwise
        """
        user_id = parse_user_id(request.user_id)
        if request.body is None or user_id is None:
            return ApiResult(400)

        update_dto = self._mapper.update_dto_from_payload(request.body)
        errors = validate_update_user(update_dto)
        if not errors.is_valid:
            return self._unprocessable(errors)

        entity = self._mapper.update_dto_to_entity(update_dto, user_id)

        if self._repository.find_by_id(user_id) is None:
            created = self._repository.insert(entity)
            logger.info(f"Upserted user {created.id} (correlation_id={request.correlation_id})")
            audit.safe_log_user_event(
                "user_upserted",
                str(created.id),
                login=created.login,
                details={"correlation_id": request.correlation_id},
            )
            return self._created(created.id)

        self._repository.update(entity)
        logger.info(f"Replaced user {user_id} (correlation_id={request.correlation_id})")
        audit.safe_log_user_event(
            "user_replaced",
            str(user_id),
            login=entity.login,
            details={"correlation_id": request.correlation_id},
        )
        return ApiResult(204)

    def partially_update_user(self, request: UserRequest) -> ApiResult:
        """PATCH /{id}: apply the document, validate, persist only on success.

        An unparsable identity is reported as 404 (not 400 as in PUT).
        """
        if request.patch is None:
            return ApiResult(400)

        user_id = parse_user_id(request.user_id)
        if user_id is None:
            return ApiResult(404)

        entity = self._repository.find_by_id(user_id)
        if entity is None:
            return ApiResult(404)

        update_dto = self._mapper.to_update_dto(entity)
        errors = ValidationErrors()
        apply_patch(update_dto, request.patch, errors)
        validate_update_user(update_dto, errors)
        if not errors.is_valid:
            return self._unprocessable(errors)

        patched = self._mapper.update_dto_to_entity(update_dto, user_id, existing=entity)
        self._repository.update(patched)
        logger.info(f"Patched user {user_id} with {len(request.patch)} op(s) (correlation_id={request.correlation_id})")
        audit.safe_log_user_event(
            "user_patched",
            str(user_id),
            login=patched.login,
            details={
                "operations": [f"{op.op} {op.path}" for op in request.patch],
                "correlation_id": request.correlation_id,
            },
        )
        return ApiResult(204)

    def delete_user(self, request: UserRequest) -> ApiResult:
        """DELETE /{id}. Unparsable and unknown identities both give 404."""
        user_id = parse_user_id(request.user_id)
        if user_id is None:
            return ApiResult(404)

        entity = self._repository.find_by_id(user_id)
        if entity is None:
            return ApiResult(404)

        self._repository.delete(user_id)
        logger.info(f"Deleted user {user_id} (correlation_id={request.correlation_id})")
        audit.safe_log_user_event(
            "user_deleted",
            str(user_id),
            login=entity.login,
            details={"correlation_id": request.correlation_id},
        )
        return ApiResult(204)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _created(self, user_id: uuid.UUID) -> ApiResult:
        location = self._link_builder(GET_USER_ROUTE, user_id=str(user_id))
        return ApiResult(201, user_id, {"Location": location})

    @staticmethod
    def _unprocessable(errors: ValidationErrors) -> ApiResult:
        logger.info(f"Validation failed: {dict(errors)}")
        return ApiResult(422, errors)
