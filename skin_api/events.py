"""
Domain events and their delivery to an optional subscriber.

Route handlers announce what happened (a review was requested, a skin was
uploaded, an upload failed) through ``g.notify(event)``. The notifier pairs
each event with the request's ``UserContext`` and hands both to the
subscriber given to ``create_app``. Background delivery, the default,
never blocks the request.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional, Union

from flask import g

from skin_api.api.context import UserContext
from skin_api.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReviewRequested:
    md5: str
    type = "REVIEW_REQUESTED"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, **asdict(self)}


@dataclass(frozen=True)
class SkinUploaded:
    md5: str
    type = "SKIN_UPLOADED"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, **asdict(self)}


@dataclass(frozen=True)
class ErrorProcessingUpload:
    id: str
    message: str
    type = "ERROR_PROCESSING_UPLOAD"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, **asdict(self)}


DomainEvent = Union[ReviewRequested, SkinUploaded, ErrorProcessingUpload]
DOMAIN_EVENT_TYPES = (ReviewRequested, SkinUploaded, ErrorProcessingUpload)

EventSubscriber = Callable[[DomainEvent, UserContext], None]
Notify = Callable[[DomainEvent], None]


class InlineDispatcher:
    """Delivers events on the calling thread. Subscriber errors propagate."""

    def dispatch(self, subscriber: EventSubscriber, event: DomainEvent, ctx: UserContext) -> None:
        subscriber(event, ctx)

    def drain(self) -> None:
        pass

    def shutdown(self) -> None:
        pass


class BackgroundDispatcher:
    """
    Delivers events on a single worker thread.

    ``dispatch`` returns as soon as the event is queued. One worker keeps
    deliveries in call order. A subscriber that raises does not affect the
    request; the failure is written to the error log.

    Contexts that support ``retain()`` stay open until their queued
    deliveries have run, even when the request has already finished.
    """

    def __init__(self, thread_name_prefix: str = 'event-notifier'):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name_prefix)

    def dispatch(self, subscriber: EventSubscriber, event: DomainEvent, ctx: UserContext) -> None:
        retain = getattr(ctx, 'retain', None)
        if retain is not None:
            retain()
        try:
            future = self._executor.submit(subscriber, event, ctx)
        except RuntimeError:
            if retain is not None:
                ctx.release()
            raise
        future.add_done_callback(lambda f: self._finish(f, event, ctx, retain is not None))

    def drain(self) -> None:
        """Block until every event queued so far has been delivered."""
        self._executor.submit(lambda: None).result()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _finish(future: Future, event: DomainEvent, ctx: UserContext, retained: bool) -> None:
        if retained:
            ctx.release()
        error = future.exception()
        if error is not None:
            logger.error(
                f"Event subscriber failed on {event.type}: {error}",
                exc_info=error,
                extra={'event': event.to_dict()}
            )


Dispatcher = Union[InlineDispatcher, BackgroundDispatcher]


def make_dispatcher(mode: str) -> Dispatcher:
    """Build the dispatcher named by ``EventSettings.dispatch``."""
    if mode == 'inline':
        return InlineDispatcher()
    if mode == 'background':
        return BackgroundDispatcher()
    raise ValueError(f"Unknown event dispatch mode: {mode}")


def _notify_disabled(event: DomainEvent) -> None:
    pass


class EventNotifier:
    """
    Gives each request a ``notify`` function bound to its context.

    Args:
        subscriber: Receives ``(event, ctx)``; None disables delivery
        dispatcher: How deliveries are scheduled

    Usage:
        notifier = EventNotifier(on_event, BackgroundDispatcher())
        notify = notifier.bind(ctx)
        notify(SkinUploaded(md5))
    """

    def __init__(self, subscriber: Optional[EventSubscriber] = None,
                 dispatcher: Optional[Dispatcher] = None):
        self._subscriber = subscriber
        self.dispatcher = dispatcher if dispatcher is not None else BackgroundDispatcher()

    @property
    def enabled(self) -> bool:
        return self._subscriber is not None

    def bind(self, ctx: UserContext) -> Notify:
        if not self.enabled:
            return _notify_disabled

        subscriber = self._subscriber
        dispatcher = self.dispatcher

        def notify(event: DomainEvent) -> None:
            if not isinstance(event, DOMAIN_EVENT_TYPES):
                raise TypeError(f"Not a domain event: {event!r}")
            dispatcher.dispatch(subscriber, event, ctx)

        return notify

    def shutdown(self) -> None:
        """Deliver everything still queued and stop the dispatcher."""
        self.dispatcher.shutdown()

    def install(self, app) -> None:
        @app.before_request
        def attach_notify():
            g.notify = self.bind(g.ctx)
