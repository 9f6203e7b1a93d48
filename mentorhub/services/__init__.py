# mentorhub/services/__init__.py
from . import notification_service
from . import scheduling_service

__all__ = ["notification_service", "scheduling_service"]
