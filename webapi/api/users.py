"""Users resource endpoints.

Routes are declared in an explicit table (rule, endpoint, methods, view) and
registered on the blueprint in one loop. Each view parses the Flask request
into a ``UserRequest``, hands it to the ``UsersController`` stored on the app,
and renders the ``ApiResult`` in the negotiated format.

    GET     /{id}       200 | 404
    HEAD    /{id}       200 (no body) | 404
    GET     /           200 + X-Pagination
    POST    /           201 + Location | 400 | 422
    PUT     /{id}       201 | 204 | 400 | 422
    PATCH   /{id}       204 | 400 | 404 | 422
    DELETE  /{id}       204 | 404
    OPTIONS /           200 + Allow
"""

from __future__ import annotations
import logging
from typing import Callable

from flask import Blueprint, Response, current_app, request, url_for

from webapi.api.errors import ApiError, error_response
from webapi.api.negotiation import negotiate_mimetype, read_patch_document, read_user_payload, render
from webapi.core.patch import MalformedPatchError, parse_patch_document
from webapi.core.users_controller import ApiResult, UserRequest, UsersController

bp = Blueprint("users", __name__)

logger = logging.getLogger(__name__)

CONTROLLER_CONFIG_KEY = "USERS_CONTROLLER"

_STATUS_MESSAGES = {
    400: "Request body or identifier is missing or malformed",
    404: "User not found",
}


def build_link(route_name: str, **values) -> str:
    """Absolute URL for a named route of this blueprint.

    Extra values that are not part of the rule become query parameters.
    """
    return url_for(f"{bp.name}.{route_name}", _external=True, **values)


def _controller() -> UsersController:
    return current_app.config[CONTROLLER_CONFIG_KEY]


def _base_request(**kwargs) -> UserRequest:
    return UserRequest(correlation_id=request.headers.get("X-Correlation-Id"), **kwargs)


def _respond(result: ApiResult) -> Response:
    """Render an ApiResult; bodyless client errors get the standard error body."""
    if result.status >= 400 and result.body is None:
        response = error_response(result.status, _STATUS_MESSAGES.get(result.status))
        for name, value in result.headers.items():
            response.headers[name] = value
        return response
    return render(result.body, result.status, negotiate_mimetype(), result.headers)


# ─────────────────────────────────────────────────────────────────────────────
# Request Validation Middleware
# ─────────────────────────────────────────────────────────────────────────────

@bp.before_request
def check_acceptable():
    """Reject requests whose Accept header excludes both JSON and XML."""
    if negotiate_mimetype() is None:
        raise ApiError(406, f"Cannot produce a response matching Accept: {request.headers.get('Accept')}")


@bp.after_request
def add_correlation_id(response):
    """Echo the correlation ID for tracing."""
    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        response.headers["X-Correlation-Id"] = correlation_id
    return response


# ─────────────────────────────────────────────────────────────────────────────
# Views
# ─────────────────────────────────────────────────────────────────────────────

def get_user_by_id(user_id: str):
    """Retrieve a single user. HEAD shares this view; Flask drops the body."""
    return _respond(_controller().get_user_by_id(_base_request(user_id=user_id)))


def get_users():
    """List one page of users.

    Query parameters:
        - pageNumber: 1-based page (values below 1 behave as 1)
        - pageSize: items per page (clamped to [1, 20])
    """
    user_request = _base_request(
        page_number=request.args.get("pageNumber", type=int),
        page_size=request.args.get("pageSize", type=int),
    )
    return _respond(_controller().get_users(user_request))


def create_user():
    payload = read_user_payload()
    return _respond(_controller().create_user(_base_request(body=payload)))


def update_user(user_id: str):
    payload = read_user_payload()
    return _respond(_controller().update_user(_base_request(user_id=user_id, body=payload)))


def partially_update_user(user_id: str):
    document = read_patch_document()
    operations = None
    if document is not None:
        try:
            operations = parse_patch_document(document)
        except MalformedPatchError as exc:
            raise ApiError(400, str(exc))
    return _respond(_controller().partially_update_user(_base_request(user_id=user_id, patch=operations)))


def delete_user(user_id: str):
    return _respond(_controller().delete_user(_base_request(user_id=user_id)))


def get_users_options():
    return _respond(_controller().get_users_options(_base_request()))


# ─────────────────────────────────────────────────────────────────────────────
# Routing Table
# ─────────────────────────────────────────────────────────────────────────────

ROUTES: tuple[tuple[str, str, tuple[str, ...], Callable], ...] = (
    ("/<user_id>", "get_user_by_id", ("GET", "HEAD"), get_user_by_id),
    ("", "get_users", ("GET",), get_users),
    ("", "create_user", ("POST",), create_user),
    ("", "get_users_options", ("OPTIONS",), get_users_options),
    # Trailing-slash aliases; links are built from the rules above
    ("/", "get_users", ("GET",), get_users),
    ("/", "create_user", ("POST",), create_user),
    ("/", "get_users_options", ("OPTIONS",), get_users_options),
    ("/<user_id>", "update_user", ("PUT",), update_user),
    ("/<user_id>", "partially_update_user", ("PATCH",), partially_update_user),
    ("/<user_id>", "delete_user", ("DELETE",), delete_user),
)

for _rule, _endpoint, _methods, _view in ROUTES:
    bp.add_url_rule(_rule, _endpoint, _view, methods=list(_methods), provide_automatic_options=False)
