"""Staffline Infra TaskIQ -- post-commit event delivery."""

from staffline.infra.taskiq.broker import broker, get_broker, get_result_backend
from staffline.infra.taskiq.publisher import TaskIQEventPublisher
from staffline.infra.taskiq.settings import TaskIQSettings, get_taskiq_settings

__all__ = [
    "TaskIQEventPublisher",
    "TaskIQSettings",
    "broker",
    "get_broker",
    "get_result_backend",
    "get_taskiq_settings",
]
