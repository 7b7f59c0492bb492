"""
ASGI WebSocket endpoint: ``/ws?shop=<id>``.

The client authenticates with its Django session cookie, subscribes to one
shop and then receives ``{type, shop_id, payload}`` messages. A ``ping``
text frame is answered with ``pong``. Subscriptions are dropped as soon as
the socket goes away.
"""

import asyncio
import contextlib
import json
import logging
from http.cookies import SimpleCookie
from importlib import import_module
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from django.apps import apps
from django.conf import settings

from ..auth import identity_from_session
from ..conf import get_setting

logger = logging.getLogger(__name__)

WS_PATH = '/ws'

CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_BAD_REQUEST = 4400


def _session_key(scope):
    for name, value in scope.get('headers', []):
        if name == b'cookie':
            cookie = SimpleCookie(value.decode('latin-1'))
            morsel = cookie.get(settings.SESSION_COOKIE_NAME)
            return morsel.value if morsel else None
    return None


@sync_to_async
def session_identity(scope):
    """Identity of the Django session behind the connection's cookie."""
    session_key = _session_key(scope)
    if not session_key:
        return None
    engine = import_module(settings.SESSION_ENGINE)
    session = engine.SessionStore(session_key)
    return identity_from_session(session)


def _shop_id(scope):
    params = parse_qs(scope.get('query_string', b'').decode())
    try:
        return int(params['shop'][0])
    except (KeyError, IndexError, ValueError):
        return None


class RealtimeEndpoint:
    """
    ASGI application for one realtime connection per client session.

    Args:
        broadcaster: Defaults to the app's broadcaster
        authenticate: Coroutine function ``scope -> Identity or None``
    """

    def __init__(self, broadcaster=None, authenticate=session_identity):
        self._broadcaster = broadcaster
        self.authenticate = authenticate

    @property
    def broadcaster(self):
        if self._broadcaster is None:
            return apps.get_app_config('shopfloor').broadcaster
        return self._broadcaster

    async def __call__(self, scope, receive, send):
        message = await receive()
        if message['type'] != 'websocket.connect':
            return

        shop_id = _shop_id(scope)
        if shop_id is None:
            await send({'type': 'websocket.close', 'code': CLOSE_BAD_REQUEST})
            return
        identity = await self.authenticate(scope)
        if identity is None or not identity.is_authenticated:
            await send({'type': 'websocket.close', 'code': CLOSE_UNAUTHORIZED})
            return
        if not identity.can_access(shop_id):
            logger.warning("User %s denied realtime access to shop %s", identity.user_id, shop_id)
            await send({'type': 'websocket.close', 'code': CLOSE_FORBIDDEN})
            return

        await send({'type': 'websocket.accept'})
        subscription = self.broadcaster.subscribe(
            shop_id, user_id=identity.user_id, loop=asyncio.get_running_loop(),
        )
        pump = asyncio.ensure_future(self._pump(subscription, send))
        try:
            await self._read(receive, send)
        finally:
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
            subscription.close()
            logger.info("Client %s left shop %s", identity.user_id, shop_id)

    async def _pump(self, subscription, send):
        while True:
            event = await subscription.get()
            try:
                await send({'type': 'websocket.send', 'text': json.dumps(event.as_message())})
            except OSError as e:
                # Peer is gone; the reader sees the disconnect and cleans up
                logger.info("Send of %s to %r failed: %s", event.type, subscription, e)
                return

    async def _read(self, receive, send):
        while True:
            message = await receive()
            if message['type'] == 'websocket.disconnect':
                return
            if message['type'] != 'websocket.receive':
                continue
            text = message.get('text') or ''
            try:
                data = json.loads(text)
            except ValueError:
                data = text
            if data == 'ping' or (isinstance(data, dict) and data.get('type') == 'ping'):
                await send({'type': 'websocket.send', 'text': json.dumps({'type': 'pong'})})


async def publish_predictions_periodically(interval, broadcaster=None):
    """Publish analytics predictions to every shop with listeners, forever."""
    from ..services.analytics_service import AnalyticsService

    publish = sync_to_async(AnalyticsService.publish_predictions)
    while True:
        await asyncio.sleep(interval)
        active = broadcaster or apps.get_app_config('shopfloor').broadcaster
        shop_ids = active.shop_ids()
        if not shop_ids:
            logger.debug("No realtime clients, skipping prediction update")
            continue
        for shop_id in shop_ids:
            try:
                await publish(shop_id)
            except Exception:
                logger.exception("Prediction update failed for shop %s", shop_id)


def websocket_router(http_application, websocket_application=None, path=WS_PATH,
                     prediction_interval=None):
    """
    Route ``path`` websockets to the realtime endpoint, everything else to Django.

    Lifespan events start and stop the periodic prediction publisher
    (``PREDICTION_INTERVAL`` seconds; 0 disables it).
    """
    websocket_application = websocket_application or RealtimeEndpoint()

    async def lifespan(receive, send):
        task = None
        while True:
            message = await receive()
            if message['type'] == 'lifespan.startup':
                interval = prediction_interval
                if interval is None:
                    interval = get_setting('PREDICTION_INTERVAL')
                if interval:
                    task = asyncio.ensure_future(publish_predictions_periodically(interval))
                await send({'type': 'lifespan.startup.complete'})
            elif message['type'] == 'lifespan.shutdown':
                if task is not None:
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
                await send({'type': 'lifespan.shutdown.complete'})
                return

    async def application(scope, receive, send):
        if scope['type'] == 'lifespan':
            return await lifespan(receive, send)
        if scope['type'] == 'websocket':
            if scope['path'].rstrip('/') == path:
                return await websocket_application(scope, receive, send)
            await receive()
            await send({'type': 'websocket.close', 'code': 1000})
            return
        return await http_application(scope, receive, send)

    return application
