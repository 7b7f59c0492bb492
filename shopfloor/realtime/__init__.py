from .broadcaster import Broadcaster, Event, Subscription

__all__ = ['Broadcaster', 'Event', 'Subscription']
