"""
Lifecycle hook registry.

Replaces Django signals for derived-field maintenance. Signals are
implicit: any save() anywhere fires them, and they do NOT fire for
QuerySet.update() / QuerySet.delete(). Here the callbacks are registered
explicitly per (model, event) and are only run by the Repository, which
calls them inside the same transaction.atomic() block as the mutation.

Every callback receives the instance and the database alias it must use:

    @hooks.register(Post, hooks.AFTER_CREATE)
    def on_post_created(post, using):
        ...

A callback that raises aborts the enclosing transaction.
"""
import logging
from collections import defaultdict

logger = logging.getLogger(__name__)

AFTER_CREATE = 'after_create'
AFTER_DELETE = 'after_delete'

EVENTS = (AFTER_CREATE, AFTER_DELETE)

_registry = defaultdict(list)


def _check_event(event):
    if event not in EVENTS:
        raise ValueError(f"Unknown hook event: {event!r}")


def register(model, event):
    """Decorator registering ``func`` to run on ``event`` for ``model``."""
    _check_event(event)

    def decorator(func):
        callbacks = _registry[(model, event)]
        # registering the same function twice is a no-op
        if func not in callbacks:
            callbacks.append(func)
        return func

    return decorator


def unregister(model, event, func):
    _check_event(event)
    try:
        _registry[(model, event)].remove(func)
    except ValueError:
        return False
    return True


def receivers(model, event):
    """Registered callbacks for (model, event), in registration order."""
    _check_event(event)
    return list(_registry.get((model, event), ()))


def fire(event, instance, using):
    """
    Run every callback registered for ``type(instance)`` and ``event``.

    Must be called inside transaction.atomic(using=using); exceptions are
    not caught here.
    """
    callbacks = receivers(type(instance), event)
    for callback in callbacks:
        logger.debug(
            "Running %s hook %s for %s pk=%s",
            event, callback.__name__, type(instance).__name__, instance.pk
        )
        callback(instance, using=using)
    return len(callbacks)
