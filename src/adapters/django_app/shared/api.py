"""
JSON API plumbing shared by the ticket, payment and statistics views.

Response envelope:
    {"success": true, "data": ..., "meta": ...}
    {"success": false, "error": "...", "code": "...", "meta": ...}

Identity:
    Authentication is owned by the identity service. Views build an
    Actor from the Django session user (staff users are admins). When
    TRUST_IDENTITY_HEADERS is on, the headers set by the gateway in
    front of us are accepted as well:

        X-User-Id: cust-42
        X-User-Role: customer | admin

    The setting is off by default; without it the headers are ignored.
"""

import json
import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from src.core.shared.actor import Actor, Role
from src.core.shared.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    ConcurrencyError,
    DomainException,
    EntityNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

USER_ID_HEADER = 'HTTP_X_USER_ID'
USER_ROLE_HEADER = 'HTTP_X_USER_ROLE'


class AuthenticationRequired(Exception):
    """No session user and no trusted identity headers."""


def json_response(success: bool, data: Any = None, error: str = None,
                  status: int = 200, meta: Dict = None, code: str = None) -> JsonResponse:
    response = {'success': success}

    if data is not None:
        response['data'] = data

    if error is not None:
        response['error'] = error

    if code is not None:
        response['code'] = code

    if meta is not None:
        response['meta'] = meta

    return JsonResponse(response, status=status)


def parse_json_body(request: HttpRequest) -> Dict:
    """
    Raises:
        ValidationError: If the body is not a JSON object
    """
    if not request.body:
        return {}

    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON: {e}", field="body")

    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object", field="body")
    return data


def get_actor(request: HttpRequest) -> Actor:
    """
    Raises:
        AuthenticationRequired: If the caller is anonymous
        ValidationError: If X-User-Role is not a known role
    """
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return Actor(user_id=str(user.pk), role=Role.ADMIN if user.is_staff else Role.CUSTOMER)

    if not getattr(settings, 'TRUST_IDENTITY_HEADERS', False):
        if request.META.get(USER_ID_HEADER):
            logger.warning("Ignoring identity headers on %s %s", request.method, request.path)
        raise AuthenticationRequired()

    user_id = request.META.get(USER_ID_HEADER)
    if not user_id:
        raise AuthenticationRequired()
    return Actor(user_id=user_id, role=Role.from_string(request.META.get(USER_ROLE_HEADER) or 'customer'))


def query_int(request: HttpRequest, name: str, default: int) -> int:
    raw = request.GET.get(name)
    if raw in (None, ''):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", field=name)


def query_bool(request: HttpRequest, name: str) -> Optional[bool]:
    raw = request.GET.get(name)
    if raw in (None, ''):
        return None
    return raw.lower() in ('1', 'true', 'yes')


@method_decorator(csrf_exempt, name='dispatch')
class BaseAPIView(View):
    """
    Base view for the JSON API.

    Provides:
    - JSON body parsing
    - Actor resolution
    - Service lookup in the DI container
    - Exception → HTTP status mapping
    """

    def get_container(self):
        from src.config.container import get_container
        return get_container()

    def get_service(self, service_name: str):
        return getattr(self.get_container(), service_name)()

    def parse_body(self, request: HttpRequest) -> Dict:
        return parse_json_body(request)

    def get_actor(self, request: HttpRequest) -> Actor:
        return get_actor(request)

    def handle_exception(self, e: Exception) -> JsonResponse:
        if isinstance(e, AuthenticationRequired):
            return json_response(success=False, error="Authentication required",
                                 code="AUTHENTICATION_REQUIRED", status=401)

        if isinstance(e, ValidationError):
            return json_response(success=False, error=e.message, code=e.code,
                                 status=400, meta={'field': e.field})

        if isinstance(e, AuthorizationError):
            return json_response(success=False, error=e.message, code=e.code,
                                 status=403, meta={'action': e.action})

        if isinstance(e, EntityNotFoundError):
            return json_response(success=False, error=e.message, code=e.code, status=404)

        if isinstance(e, ConcurrencyError):
            return json_response(success=False, error=e.message, code=e.code, status=409)

        if isinstance(e, BusinessRuleViolationError):
            return json_response(success=False, error=e.message, code=e.code,
                                 status=422, meta={'rule': e.rule})

        if isinstance(e, DomainException):
            return json_response(success=False, error=e.message, code=e.code, status=400)

        logger.exception("Unexpected API error: %s", e)
        return json_response(success=False, error="Internal server error",
                             code="INTERNAL_ERROR", status=500)
