from django.apps import AppConfig

from .module import MODULE_ID, MODULE_NAME


class ShopfloorConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = MODULE_ID
    verbose_name = MODULE_NAME

    def ready(self):
        from .conf import get_setting
        from .query_cache import QueryCache
        from .realtime.broadcaster import Broadcaster
        from .signals import EVENT_TYPES, relay_event

        self.broadcaster = Broadcaster(queue_size=get_setting('SUBSCRIBER_QUEUE_SIZE'))
        self.query_cache = QueryCache(alias=get_setting('CACHE_ALIAS'))

        for signal, event_type in EVENT_TYPES.items():
            signal.connect(relay_event, dispatch_uid=f'shopfloor.relay.{event_type}')
