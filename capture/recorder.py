from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from playwright.async_api import CDPSession, Page, Error as PlaywrightError

from capture.events import EventKind, EventLog, ProtocolEvent
from capture.har_builder import HarExportStats, build_har
from capture.har_models import HarCreator, HarDocument
from core.exceptions import AlreadyDetachedError, SessionSetupError
from core.logger import get_structured_logger

logger = get_structured_logger(__name__)

ENABLED_DOMAINS = ("Page", "Network")


class CaptureSession:
    """
    One active CDP subscription and the event log it fills.

    Created by :func:`attach`; :meth:`export` detaches it and produces the HAR
    document exactly once. After that the session is terminal.
    """

    def __init__(self, cdp_session: CDPSession, owns_cdp_session: bool = False) -> None:
        self.cdp_session = cdp_session
        self.owns_cdp_session = owns_cdp_session
        self.log = EventLog()
        self.stats: Optional[HarExportStats] = None
        self._listeners: List[Tuple[str, Callable[[Any], None]]] = []
        self._enabled_domains: List[str] = []
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def _handler_for(self, kind: EventKind) -> Callable[[Any], None]:
        def on_event(params: Any) -> None:
            if not self._attached:
                return
            self.log.append(ProtocolEvent(kind=kind, payload=params if params is not None else {}))

        return on_event

    async def _subscribe(self) -> None:
        for domain in ENABLED_DOMAINS:
            try:
                await self.cdp_session.send(f"{domain}.enable")
            except PlaywrightError as e:
                await self._rollback()
                raise SessionSetupError(f"{domain}.enable", e) from e
            self._enabled_domains.append(domain)

        for kind in EventKind:
            handler = self._handler_for(kind)
            self.cdp_session.on(kind.value, handler)
            self._listeners.append((kind.value, handler))
        self._attached = True
        logger.debug("capture_session_attached", event_kinds=len(self._listeners))

    def _remove_listeners(self) -> None:
        for event_name, handler in self._listeners:
            self.cdp_session.remove_listener(event_name, handler)
        self._listeners.clear()

    async def _rollback(self) -> None:
        self._remove_listeners()
        for domain in reversed(self._enabled_domains):
            try:
                await self.cdp_session.send(f"{domain}.disable")
            except PlaywrightError as e:
                logger.warning("capture_session_rollback_failed", domain=domain, error=str(e))
        self._enabled_domains.clear()
        if self.owns_cdp_session:
            try:
                await self.cdp_session.detach()
            except PlaywrightError as e:
                logger.warning("cdp_session_detach_failed", error=str(e))

    async def detach(self) -> None:
        """Stops receiving events and freezes the log. Fails if already detached."""
        if not self._attached:
            raise AlreadyDetachedError()
        self._attached = False
        self._remove_listeners()
        self.log.freeze()
        try:
            await self.cdp_session.detach()
        except PlaywrightError as e:
            # Listeners are already gone; the frozen log is complete.
            logger.warning("cdp_session_detach_failed", error=str(e))
        logger.debug("capture_session_detached", events=len(self.log))

    async def export(self, creator: Optional[HarCreator] = None) -> HarDocument:
        """
        Detaches the session, then converts the frozen event log to HAR.

        Args:
            creator: Optional HAR creator block.

        Returns:
            The HAR document built from every event received while attached.

        Raises:
            AlreadyDetachedError: If the session was already detached or exported.
        """
        await self.detach()
        document, stats = build_har(self.log, creator=creator)
        self.stats = stats
        logger.info(
            "har_exported",
            events=stats.events,
            entries=stats.entries,
            pages=stats.pages,
            dropped=stats.dropped_count,
        )
        return document

    def messages(self) -> List[Dict[str, Any]]:
        """The recorded events in CDP message shape, in arrival order."""
        return [event.to_message() for event in self.log]


async def attach(cdp_session: CDPSession, owns_cdp_session: bool = False) -> CaptureSession:
    """
    Enables the Page and Network domains on `cdp_session` and starts recording.

    Raises:
        SessionSetupError: If a domain cannot be enabled. Nothing stays subscribed.
    """
    session = CaptureSession(cdp_session, owns_cdp_session=owns_cdp_session)
    await session._subscribe()
    return session


async def open_cdp_session(page: Page) -> CDPSession:
    try:
        return await page.context.new_cdp_session(page)
    except PlaywrightError as e:
        raise SessionSetupError("new_cdp_session", e) from e


async def attach_to_page(page: Page) -> CaptureSession:
    """Opens a dedicated CDP session for `page` and attaches a recorder to it."""
    cdp_session = await open_cdp_session(page)
    return await attach(cdp_session, owns_cdp_session=True)


async def export_har(session: CaptureSession, creator: Optional[HarCreator] = None) -> HarDocument:
    return await session.export(creator=creator)
