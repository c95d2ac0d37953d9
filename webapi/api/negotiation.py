"""Content negotiation between JSON and XML.

Response format comes from the ``Accept`` header (werkzeug's quality-aware
matching, JSON on ties or when absent). Request bodies are decoded from JSON or
XML according to ``Content-Type``. Both encodings carry the same field set.
"""
from __future__ import annotations
import json
import re
import uuid
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from flask import Response, request
from werkzeug.exceptions import BadRequest

from webapi.api.errors import ApiError
from webapi.core.models import UserDto, ValidationErrors

JSON_MIMETYPE = "application/json"
XML_MIMETYPES = ("application/xml", "text/xml")
SUPPORTED_MIMETYPES = (JSON_MIMETYPE,) + XML_MIMETYPES

# Characters XML 1.0 cannot carry, even escaped
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ─────────────────────────────────────────────────────────────────────────────
# Response format selection
# ─────────────────────────────────────────────────────────────────────────────

def negotiate_mimetype() -> Optional[str]:
    """Pick the response mimetype for the current request.

    Returns:
        One of SUPPORTED_MIMETYPES, or None when the client accepts none of them
    """
    accept = request.accept_mimetypes
    if not accept:
        return JSON_MIMETYPE
    return accept.best_match(SUPPORTED_MIMETYPES)


def preferred_mimetype() -> str:
    """Like negotiate_mimetype() but never fails; used for error bodies."""
    return negotiate_mimetype() or JSON_MIMETYPE


def is_xml(mimetype: str) -> bool:
    return mimetype in XML_MIMETYPES


# ─────────────────────────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────────────────────────

def to_plain(body: Any) -> Any:
    """Reduce a controller body to JSON-compatible primitives."""
    if isinstance(body, UserDto):
        return body.to_dict()
    if isinstance(body, uuid.UUID):
        return str(body)
    if isinstance(body, ValidationErrors):
        return {field: list(messages) for field, messages in body.items()}
    if isinstance(body, list):
        return [to_plain(item) for item in body]
    return body


def _scalar_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return _INVALID_XML_CHARS.sub("", str(value))


def _dict_to_element(tag: str, data: Dict[str, Any]) -> ET.Element:
    element = ET.Element(tag)
    for key, value in data.items():
        child = ET.SubElement(element, key)
        child.text = _scalar_text(value)
    return element


def to_xml(body: Any) -> bytes:
    """Encode a controller body as XML.

    Shapes:
        UserDto           -> <User><id/>...</User>
        list[UserDto]     -> <ArrayOfUser><User/>...</ArrayOfUser>
        UUID              -> <Guid>...</Guid>
        ValidationErrors  -> <ValidationProblem><Error field="login">...</Error></ValidationProblem>
        dict              -> <Error><error/><message/></Error>
    """
    if isinstance(body, UserDto):
        root = _dict_to_element("User", body.to_dict())
    elif isinstance(body, list):
        root = ET.Element("ArrayOfUser")
        for item in body:
            root.append(_dict_to_element("User", to_plain(item)))
    elif isinstance(body, uuid.UUID):
        root = ET.Element("Guid")
        root.text = str(body)
    elif isinstance(body, ValidationErrors):
        root = ET.Element("ValidationProblem")
        for field, messages in body.items():
            for message in messages:
                error = ET.SubElement(root, "Error", {"field": field})
                error.text = _scalar_text(message)
    elif isinstance(body, dict):
        root = _dict_to_element("Error", body)
    else:
        raise TypeError(f"Cannot encode {type(body).__name__} as XML")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def render(body: Any, status: int, mimetype: str, headers: Optional[Dict[str, str]] = None) -> Response:
    """Build a Flask response in the negotiated format.

    A None body yields an empty response with no Content-Type.
    """
    if body is None:
        response = Response(status=status)
        response.headers.pop("Content-Type", None)
    elif is_xml(mimetype):
        response = Response(to_xml(body), status=status, mimetype=mimetype)
    else:
        response = Response(json.dumps(to_plain(body)), status=status, mimetype=JSON_MIMETYPE)
    for name, value in (headers or {}).items():
        response.headers[name] = value
    return response


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────

def _strip_namespace(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _xml_to_dict(data: bytes) -> Dict[str, Any]:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ApiError(400, f"Request body is not valid XML: {exc}")
    payload = {}
    for child in root:
        payload[_strip_namespace(child.tag)] = child.text if child.text is not None else ""
    return payload


def read_user_payload() -> Optional[Dict[str, Any]]:
    """Decode a POST/PUT body.

    Returns:
        Decoded object, or None when the body is absent (empty or JSON null)

    Raises:
        ApiError: 415 for an unsupported Content-Type, 400 for an unparsable
            body or a JSON body that is not an object
    """
    data = request.get_data(cache=True)
    if not data or not data.strip():
        return None

    if request.is_json:
        try:
            payload = request.get_json()
        except BadRequest:
            raise ApiError(400, "Request body is not valid JSON")
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise ApiError(400, "Request body must be a JSON object")
        return payload

    if request.mimetype in XML_MIMETYPES:
        return _xml_to_dict(data)

    raise ApiError(415, f"Content-Type must be one of: {', '.join(SUPPORTED_MIMETYPES)}")


def read_patch_document() -> Any:
    """Decode a PATCH body (application/json-patch+json or application/json).

    Returns:
        Decoded JSON value, or None when the body is absent
    """
    data = request.get_data(cache=True)
    if not data or not data.strip():
        return None

    if not request.is_json:
        raise ApiError(415, "Content-Type must be application/json-patch+json")

    try:
        return request.get_json()
    except BadRequest:
        raise ApiError(400, "Request body is not valid JSON")
