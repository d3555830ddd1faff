"""Outbound HTTP: instrumented client and task notifications."""

from todo_service.infra.external.base_client import DEFAULT_TIMEOUT, InstrumentedHTTPClient
from todo_service.infra.external.notifications import USER_AGENT, TaskNotifier

__all__ = ["DEFAULT_TIMEOUT", "USER_AGENT", "InstrumentedHTTPClient", "TaskNotifier"]
