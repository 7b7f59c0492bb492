"""
Request identity and view decorators.

Authentication happens upstream: the session already carries
``local_user_id``, ``is_admin`` and ``shop_ids``. This module only reads that
identity and decides which shops a user may touch.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from django.conf import settings
from django.contrib.auth.views import redirect_to_login
from django.http import JsonResponse

from .exceptions import PermissionDenied, ShopfloorError, StateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: Optional[int]
    is_admin: bool = False
    shop_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def is_authenticated(self):
        return self.user_id is not None

    def can_access(self, shop_id):
        return self.is_admin or int(shop_id) in self.shop_ids


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def identity_from_session(session) -> Identity:
    shop_ids = {_to_int(s) for s in session.get('shop_ids') or []}
    shop_ids.discard(None)
    return Identity(
        user_id=_to_int(session.get('local_user_id')),
        is_admin=bool(session.get('is_admin', False)),
        shop_ids=frozenset(shop_ids),
    )


def grant_shop_access(session, shop_id):
    """Add ``shop_id`` to the session's access list."""
    shop_ids = [s for s in session.get('shop_ids') or [] if _to_int(s) != shop_id]
    shop_ids.append(shop_id)
    session['shop_ids'] = shop_ids


def revoke_shop_access(session, shop_id):
    session['shop_ids'] = [
        s for s in session.get('shop_ids') or [] if _to_int(s) != int(shop_id)
    ]


def login_required(view_func):
    """Redirect to ``LOGIN_URL`` unless the session carries a user."""

    @functools.wraps(view_func)
    def wrapper(request, *args, **kwargs):
        request.identity = identity_from_session(request.session)
        if not request.identity.is_authenticated:
            return redirect_to_login(request.get_full_path(), settings.LOGIN_URL)
        return view_func(request, *args, **kwargs)

    return wrapper


def api_view(view_func):
    """
    Translate shopfloor errors into JSON responses.

    ``shop_id`` in the URL is checked against the identity's access list.
    """

    @functools.wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            shop_id = kwargs.get('shop_id')
            if shop_id is not None and not request.identity.can_access(shop_id):
                raise PermissionDenied('You do not have access to this shop')
            return view_func(request, *args, **kwargs)
        except StateError as e:
            logger.warning(
                "Rejected %s %s (possible double submit): %s",
                request.method, request.path, e.message,
            )
            return JsonResponse(e.as_dict(), status=e.status_code)
        except ShopfloorError as e:
            logger.info("Rejected %s %s: %s", request.method, request.path, e.message)
            return JsonResponse(e.as_dict(), status=e.status_code)

    return wrapper
