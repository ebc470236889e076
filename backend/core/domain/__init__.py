"""
core.domain — Shared domain utilities for the complaint lifecycle engine.

Modules
-------
exceptions         Domain error taxonomy (NotFound, Forbidden, InvalidTransition, …).
exception_handler  DRF hook mapping domain errors to HTTP responses.
notifications      Email notices + in-app ``Notification`` records.
realtime           Publish/subscribe bus for live complaint updates.
transactions       Optimistic-concurrency (compare-and-swap) writes.
access             Role-scoped queryset selectors.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationService
    from core.domain.realtime import get_event_bus
    from core.domain.transactions import cas_update
    from core.domain.access import apply_role_scope
"""
