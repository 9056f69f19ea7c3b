"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis, mark_redis_unavailable
from .event_lock import event_lock

__all__ = ['get_redis', 'close_redis', 'mark_redis_unavailable', 'event_lock']
