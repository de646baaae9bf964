"""
Typed response processing.

Turns buffered HTTP responses into models, soft absences or errors:

- JSON bodies: decoded into a pydantic model; 404 means "not there" (None)
- XML bodies: decoded with the response's declared charset
- Booleans: 2xx is True, and for idempotent registration 409 is too
- Everything else: ServiceResponseError carrying the status code and the
  best message that can be dug out of the body

Digging the message out never hides the status: a body that cannot be read
only degrades the message to the raw text, or to "".
"""

import json
import logging
from collections.abc import Callable
from http import HTTPStatus
from typing import Optional, TypeVar
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException, ElementTree
from pydantic import BaseModel, ValidationError

from core.errors import ResponseDecodeError, ServiceResponseError
from gameservices.envelope import child_text, find_child, inner_text, parse_document
from gameservices.models import ErrorResponse
from gameservices.transport import HttpResponse

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def _message_from_json(text: str) -> tuple[Optional[str], Optional[str]]:
    """(message, code) from a flat JSON error body, or (None, None)."""
    try:
        error = ErrorResponse.model_validate_json(text)
    except ValidationError:
        return None, None
    return error.best_message, error.code


def _message_from_xml(root: Element) -> tuple[str, Optional[str]]:
    children = list(root)

    # A wrapper element around a JSON document, e.g. <string>{...}</string>
    if len(children) <= 1 and find_child(root, "Message") is None:
        text = inner_text(root).strip()
        message, code = _message_from_json(text)
        return (message or text), code

    message = child_text(root, "Message")
    code = child_text(root, "Code")
    if message is None:
        message = inner_text(root).strip()
    return message, code


def extract_error_message(response: HttpResponse) -> tuple[str, Optional[str]]:
    """
    Best-effort (message, code) for a failed response.

    Tries the XML error document, then XML wrapping JSON, then flat JSON,
    then the raw body text.
    """
    if not response.body:
        return "", None

    text = response.text()
    stripped = text.strip()
    if not stripped:
        return "", None

    if stripped.startswith("<"):
        try:
            return _message_from_xml(parse_document(stripped))
        except (ElementTree.ParseError, DefusedXmlException, ValueError):
            return text, None

    message, code = _message_from_json(stripped)
    if message is not None:
        return message, code
    return text, code


def create_exception_from_response(response: HttpResponse) -> ServiceResponseError:
    message, code = extract_error_message(response)
    if code is None:
        try:
            code = HTTPStatus(response.status).name
        except ValueError:
            code = str(response.status)
    return ServiceResponseError(
        response.status,
        error_message=message,
        error_code=code,
        context={"url": response.url} if response.url else None,
    )


def ensure_success(response: HttpResponse) -> None:
    """Raise unless the response is 2xx."""
    if not response.is_success:
        raise create_exception_from_response(response)


def decode_json(response: HttpResponse, model: type[M]) -> Optional[M]:
    """
    Decode a JSON body into ``model``.

    Returns:
        The decoded model, or None on 404

    Raises:
        ServiceResponseError: Any other non-2xx status
        ResponseDecodeError: 2xx body that does not match ``model``
    """
    if response.status == HTTPStatus.NOT_FOUND:
        return None
    return decode_created(response, model)


def decode_created(response: HttpResponse, model: type[M]) -> M:
    """
    Decode the reply to a create into ``model``.

    Unlike ``decode_json`` a 404 is an error: the thing just posted must
    come back.
    """
    ensure_success(response)
    try:
        return model.model_validate_json(response.text())
    except ValidationError as e:
        raise ResponseDecodeError(
            f"Could not decode {model.__name__} from response",
            status_code=response.status,
            cause=e,
        ) from e


def decode_json_value(response: HttpResponse) -> Optional[object]:
    """Like ``decode_json`` for bodies with no fixed shape."""
    if response.status == HTTPStatus.NOT_FOUND:
        return None
    ensure_success(response)
    try:
        return json.loads(response.text())
    except ValueError as e:
        raise ResponseDecodeError(
            "Could not decode JSON response", status_code=response.status, cause=e
        ) from e


def decode_xml(response: HttpResponse, parse: Callable[[Element], T]) -> T:
    """
    Decode an XML body with ``parse``.

    The body is converted to text with the charset the response declared
    before parsing.
    """
    ensure_success(response)
    try:
        return parse(parse_document(response.text()))
    except (ElementTree.ParseError, DefusedXmlException, ValidationError) as e:
        raise ResponseDecodeError(
            "Could not decode XML response", status_code=response.status, cause=e
        ) from e


def decode_boolean(response: HttpResponse) -> bool:
    ensure_success(response)
    return True


def decode_boolean_allow_conflict(response: HttpResponse) -> bool:
    """True on 2xx or 409; the thing being created already exists."""
    if response.is_success or response.status == HTTPStatus.CONFLICT:
        return True
    raise create_exception_from_response(response)


__all__ = [
    "extract_error_message",
    "create_exception_from_response",
    "ensure_success",
    "decode_json",
    "decode_created",
    "decode_json_value",
    "decode_xml",
    "decode_boolean",
    "decode_boolean_allow_conflict",
]
