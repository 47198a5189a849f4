"""Conversion of a recorded CDP event log into a HAR 1.2 document.

Events are folded per ``requestId`` in arrival order. A request whose id is
reused by a redirect produces one entry per hop. Groups that cannot be turned
into a valid entry are dropped and reported in :class:`HarExportStats`; the
conversion itself never fails because of bad input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

from pydantic import ValidationError

from capture.events import EventKind, ProtocolEvent
from capture.har_models import (
    HarContent,
    HarCookie,
    HarCreator,
    HarDocument,
    HarEntry,
    HarLog,
    HarNameValue,
    HarPage,
    HarPageTimings,
    HarPostData,
    HarRequest,
    HarResponse,
    HarTimings,
)
from core.exceptions import MalformedEventGroup
from core.logger import get_structured_logger

logger = get_structured_logger(__name__)

MISSING_REQUEST_ID = "<missing>"

# Raised by pydantic or datetime when a recorded value is out of range or of the wrong type.
INVALID_VALUE_ERRORS = (ValidationError, ValueError, OverflowError, OSError)


@dataclass(frozen=True)
class DroppedGroup:
    request_id: str
    reason: str


@dataclass
class HarExportStats:
    """Diagnostics of one conversion: what went in, what came out, what was lost."""

    events: int = 0
    entries: int = 0
    pages: int = 0
    dropped: List[DroppedGroup] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


@dataclass
class _Hop:
    """Accumulated state of one request hop (one future HAR entry)."""

    request_id: str
    seed: Dict[str, Any]
    pageref: Optional[str] = None
    response: Optional[Dict[str, Any]] = None
    response_timestamp: Optional[float] = None
    data_length: int = 0
    encoded_data_length: int = 0
    end_timestamp: Optional[float] = None
    finished_encoded_length: Optional[int] = None
    failure: Optional[Dict[str, Any]] = None
    from_cache: Optional[str] = None
    priority: Optional[str] = None
    redirect_to: Optional[str] = None
    malformed: Optional[str] = None

    @property
    def timestamp(self) -> float:
        return _as_float(self.seed.get("timestamp")) or 0.0


@dataclass
class _Page:
    id: str
    frame_id: str
    start_timestamp: Optional[float] = None
    wall_time: Optional[float] = None
    title: str = ""
    on_content_load: float = -1
    on_load: float = -1


class _HarFolder:
    def __init__(self) -> None:
        self.open_hops: Dict[str, _Hop] = {}
        self.closed_hops: List[_Hop] = []
        self.pages: List[_Page] = []
        self.parent_frames: Dict[str, str] = {}
        self.dropped: List[DroppedGroup] = []
        self._orphans: set[str] = set()
        # ids whose last hop is already closed; late events for them are ignored
        self._closed: set[str] = set()
        # (wallTime, timestamp) of the first seed that carries both
        self.clock_anchor: Optional[Tuple[float, float]] = None

    # --- pages ---

    def root_frame(self, frame_id: Optional[str]) -> Optional[str]:
        seen = set()
        while frame_id in self.parent_frames and frame_id not in seen:
            seen.add(frame_id)
            frame_id = self.parent_frames[frame_id]
        return frame_id

    def latest_page(self, frame_id: Optional[str] = None) -> Optional[_Page]:
        for page in reversed(self.pages):
            if frame_id is None or page.frame_id == frame_id:
                return page
        return None

    def open_page(self, frame_id: str) -> _Page:
        page = _Page(id=f"page_{len(self.pages) + 1}", frame_id=frame_id)
        self.pages.append(page)
        return page

    def on_frame_attached(self, payload: Dict[str, Any]) -> None:
        frame_id = payload.get("frameId")
        parent_id = payload.get("parentFrameId")
        if frame_id and parent_id:
            self.parent_frames[str(frame_id)] = str(parent_id)

    def on_frame_started_loading(self, payload: Dict[str, Any]) -> None:
        frame_id = payload.get("frameId")
        if not frame_id or str(frame_id) in self.parent_frames:
            return
        current = self.latest_page(str(frame_id))
        # A repeated notification before the document request reuses the page.
        if current is not None and current.start_timestamp is None:
            return
        self.open_page(str(frame_id))

    def on_page_timing(self, kind: EventKind, payload: Dict[str, Any]) -> None:
        page = self.latest_page()
        timestamp = _as_float(payload.get("timestamp"))
        if page is None or page.start_timestamp is None or timestamp is None:
            return
        elapsed = _ms(timestamp - page.start_timestamp)
        if kind is EventKind.DOM_CONTENT_EVENT_FIRED:
            page.on_content_load = elapsed
        else:
            page.on_load = elapsed

    def page_for_request(self, payload: Dict[str, Any]) -> Optional[_Page]:
        frame_id = payload.get("frameId")
        root = self.root_frame(str(frame_id)) if frame_id else None
        page = self.latest_page(root) if root else None
        if page is None and root and payload.get("type") == "Document":
            page = self.open_page(root)
        if page is None:
            page = self.latest_page()
        if page is not None and page.start_timestamp is None and payload.get("type") == "Document":
            page.start_timestamp = _as_float(payload.get("timestamp"))
            page.wall_time = _as_float(payload.get("wallTime"))
            page.title = _request_url(payload)
        return page

    # --- requests ---

    def drop(self, request_id: str, reason: str) -> None:
        self.dropped.append(DroppedGroup(request_id=request_id, reason=reason))
        logger.warning("har_group_dropped", request_id=request_id, reason=reason)

    def on_request_will_be_sent(self, request_id: str, payload: Dict[str, Any]) -> None:
        wall_time = _as_float(payload.get("wallTime"))
        timestamp = _as_float(payload.get("timestamp"))
        if self.clock_anchor is None and wall_time is not None and timestamp is not None:
            self.clock_anchor = (wall_time, timestamp)

        previous = self.open_hops.pop(request_id, None)
        if previous is not None:
            redirect_response = payload.get("redirectResponse")
            if isinstance(redirect_response, dict):
                previous.response = redirect_response
                previous.response_timestamp = timestamp
                previous.end_timestamp = timestamp
                previous.redirect_to = _request_url(payload)
            self.closed_hops.append(previous)
            self._closed.add(request_id)

        page = self.page_for_request(payload)
        self.open_hops[request_id] = _Hop(
            request_id=request_id,
            seed=payload,
            pageref=page.id if page is not None else None,
        )

    def hop_for(self, kind: EventKind, request_id: str) -> Optional[_Hop]:
        hop = self.open_hops.get(request_id)
        if hop is None and request_id not in self._orphans and request_id not in self._closed:
            self._orphans.add(request_id)
            self.drop(request_id, f"{kind.value} without matching requestWillBeSent")
        return hop

    def on_network_event(self, kind: EventKind, request_id: str, payload: Dict[str, Any]) -> None:
        hop = self.hop_for(kind, request_id)
        if hop is None:
            return
        if kind is EventKind.REQUEST_SERVED_FROM_CACHE:
            hop.from_cache = "memory"
        elif kind is EventKind.RESPONSE_RECEIVED:
            response = payload.get("response")
            if not isinstance(response, dict):
                hop.malformed = "responseReceived without a response object"
                return
            hop.response = response
            hop.response_timestamp = _as_float(payload.get("timestamp"))
            if response.get("fromDiskCache") and hop.from_cache is None:
                hop.from_cache = "disk"
        elif kind is EventKind.DATA_RECEIVED:
            hop.data_length += _as_int(payload.get("dataLength"))
            hop.encoded_data_length += _as_int(payload.get("encodedDataLength"))
        elif kind is EventKind.RESOURCE_CHANGED_PRIORITY:
            if payload.get("newPriority"):
                hop.priority = str(payload["newPriority"])
        elif kind is EventKind.LOADING_FINISHED:
            hop.end_timestamp = _as_float(payload.get("timestamp"))
            if payload.get("encodedDataLength") is not None:
                hop.finished_encoded_length = _as_int(payload.get("encodedDataLength"))
            self.close(request_id)
        elif kind is EventKind.LOADING_FAILED:
            hop.failure = payload
            hop.end_timestamp = _as_float(payload.get("timestamp"))
            self.close(request_id)

    def close(self, request_id: str) -> None:
        self.closed_hops.append(self.open_hops.pop(request_id))
        self._closed.add(request_id)

    def feed(self, event: ProtocolEvent) -> None:
        payload = event.payload if isinstance(event.payload, dict) else {}
        if event.kind is EventKind.FRAME_ATTACHED:
            self.on_frame_attached(payload)
            return
        if event.kind is EventKind.FRAME_STARTED_LOADING:
            self.on_frame_started_loading(payload)
            return
        if event.kind in (EventKind.DOM_CONTENT_EVENT_FIRED, EventKind.LOAD_EVENT_FIRED):
            self.on_page_timing(event.kind, payload)
            return

        request_id = payload.get("requestId")
        if request_id is None:
            self.drop(MISSING_REQUEST_ID, f"{event.kind.value} without requestId")
            return
        if event.kind is EventKind.REQUEST_WILL_BE_SENT:
            self.on_request_will_be_sent(str(request_id), payload)
        else:
            self.on_network_event(event.kind, str(request_id), payload)

    def wall_time_for(self, hop: _Hop) -> float:
        wall_time = _as_float(hop.seed.get("wallTime"))
        if wall_time is not None:
            return wall_time
        if self.clock_anchor is not None:
            anchor_wall, anchor_ts = self.clock_anchor
            return anchor_wall + (hop.timestamp - anchor_ts)
        return hop.timestamp


def build_har(
    events: Iterable[ProtocolEvent],
    creator: Optional[HarCreator] = None,
) -> Tuple[HarDocument, HarExportStats]:
    """
    Converts an arrival-ordered event log into a HAR document.

    Args:
        events: Recorded protocol events, in arrival order.
        creator: HAR creator block; defaults to this tool's name and version.

    Returns:
        The HAR document and the statistics of the conversion, including every
        dropped request group with the reason it was dropped.
    """
    folder = _HarFolder()
    event_count = 0
    for event in events:
        event_count += 1
        folder.feed(event)

    for request_id, hop in list(folder.open_hops.items()):
        if hop.response is not None:
            # Still streaming when capture stopped; keep what we have.
            folder.closed_hops.append(hop)
        else:
            folder.drop(request_id, "request never completed")
    folder.open_hops.clear()

    har_pages: List[HarPage] = []
    for page in folder.pages:
        if page.start_timestamp is None:
            continue
        try:
            har_pages.append(_har_page(page))
        except INVALID_VALUE_ERRORS as e:
            logger.warning("har_page_dropped", page_id=page.id, error=str(e))
    page_ids = {page.id for page in har_pages}

    entries: List[HarEntry] = []
    for hop in sorted(folder.closed_hops, key=lambda h: h.timestamp):
        try:
            entry = _entry_from_hop(hop, folder.wall_time_for(hop))
        except MalformedEventGroup as e:
            folder.drop(e.request_id, e.reason)
            continue
        except INVALID_VALUE_ERRORS as e:
            folder.drop(hop.request_id, f"invalid field value: {type(e).__name__}: {e}")
            continue
        if entry.pageref not in page_ids:
            entry.pageref = None
        entries.append(entry)

    document = HarDocument(
        log=HarLog(
            creator=creator or HarCreator(),
            pages=har_pages,
            entries=entries,
        )
    )
    stats = HarExportStats(
        events=event_count,
        entries=len(entries),
        pages=len(har_pages),
        dropped=folder.dropped,
    )
    return document, stats


def _har_page(page: _Page) -> HarPage:
    return HarPage(
        started_date_time=_iso(page.wall_time or 0.0),
        id=page.id,
        title=page.title,
        page_timings=HarPageTimings(on_content_load=page.on_content_load, on_load=page.on_load),
    )


def _entry_from_hop(hop: _Hop, wall_time: float) -> HarEntry:
    if hop.malformed:
        raise MalformedEventGroup(hop.request_id, hop.malformed)
    request = hop.seed.get("request")
    if not isinstance(request, dict) or not request.get("url"):
        raise MalformedEventGroup(hop.request_id, "requestWillBeSent without a request url")
    if hop.response is None and hop.failure is None:
        raise MalformedEventGroup(hop.request_id, "no response or failure recorded")

    response = hop.response or {}
    http_version = _http_version(response.get("protocol"))
    har_response = _har_response(hop, response, http_version)
    timings = _timings(hop, response)

    resource_type = hop.seed.get("type")
    return HarEntry(
        pageref=hop.pageref,
        started_date_time=_iso(wall_time),
        time=_total_time(timings),
        request=_har_request(request, response, http_version),
        response=har_response,
        timings=timings,
        server_ip_address=_server_ip(response.get("remoteIPAddress")),
        connection=str(response["connectionId"]) if response.get("connectionId") else None,
        from_cache=hop.from_cache,
        priority=hop.priority or _optional_str(request.get("initialPriority")),
        resource_type=str(resource_type).lower() if resource_type else None,
    )


def _har_request(request: Dict[str, Any], response: Dict[str, Any], http_version: str) -> HarRequest:
    url = str(request["url"])
    # The response carries the headers actually sent on the wire when available.
    raw_headers = response.get("requestHeaders") or request.get("headers")
    headers = _headers(raw_headers)
    post_data = None
    body_size = 0
    if request.get("postData") is not None or request.get("hasPostData"):
        text = str(request.get("postData") or "")
        mime_type = _header_value(headers, "content-type") or ""
        params = []
        if mime_type.startswith("application/x-www-form-urlencoded"):
            params = [HarNameValue(name=k, value=v) for k, v in parse_qsl(text, keep_blank_values=True)]
        post_data = HarPostData(mime_type=mime_type, text=text, params=params)
        body_size = len(text.encode("utf-8"))

    headers_text = response.get("requestHeadersText")
    return HarRequest(
        method=str(request.get("method") or "GET"),
        url=url,
        http_version=http_version,
        cookies=_request_cookies(_header_value(headers, "cookie")),
        headers=headers,
        query_string=[
            HarNameValue(name=k, value=v)
            for k, v in parse_qsl(urlsplit(url).query, keep_blank_values=True)
        ],
        post_data=post_data,
        headers_size=_text_size(headers_text),
        body_size=body_size,
    )


def _har_response(hop: _Hop, response: Dict[str, Any], http_version: str) -> HarResponse:
    headers = _headers(response.get("headers"))
    headers_text = response.get("headersText")
    headers_size = _text_size(headers_text)
    transfer_size = hop.finished_encoded_length

    if hop.from_cache:
        body_size = 0
        if hop.from_cache == "memory":
            transfer_size = 0
    elif hop.encoded_data_length > 0:
        body_size = hop.encoded_data_length
    elif transfer_size is not None:
        body_size = max(0, transfer_size - max(headers_size, 0))
    else:
        body_size = -1

    content_size = hop.data_length
    compression = content_size - body_size if body_size > 0 and content_size > body_size else None

    error = None
    status_text = str(response.get("statusText") or "")
    if hop.failure is not None:
        error = str(hop.failure.get("errorText") or ("canceled" if hop.failure.get("canceled") else "failed"))
        if hop.response is None:
            status_text = error

    return HarResponse(
        status=_as_int(response.get("status")),
        status_text=status_text,
        http_version=http_version,
        cookies=_response_cookies(_header_value(headers, "set-cookie")),
        headers=headers,
        content=HarContent(
            size=content_size,
            compression=compression,
            mime_type=str(response.get("mimeType") or "x-unknown"),
        ),
        redirect_url=hop.redirect_to or _header_value(headers, "location") or "",
        headers_size=headers_size,
        body_size=body_size,
        transfer_size=transfer_size,
        error=error,
    )


def _timings(hop: _Hop, response: Dict[str, Any]) -> HarTimings:
    timing = response.get("timing")
    start = hop.timestamp
    end = hop.end_timestamp

    if isinstance(timing, dict) and _as_float(timing.get("requestTime")) is not None:
        request_time = float(timing["requestTime"])

        def t(name: str) -> float:
            value = _as_float(timing.get(name))
            return -1.0 if value is None else value

        def span(begin: str, finish: str) -> float:
            if t(begin) < 0 or t(finish) < 0:
                return -1
            return _round(t(finish) - t(begin))

        queued = max(0.0, _ms(request_time - start))
        first_start = next((t(k) for k in ("dnsStart", "connectStart", "sendStart") if t(k) >= 0), 0.0)
        receive = 0.0
        if end is not None:
            receive = max(0.0, _ms(end - request_time) - max(t("receiveHeadersEnd"), 0.0))
        return HarTimings(
            blocked=_round(queued + first_start),
            dns=span("dnsStart", "dnsEnd"),
            connect=span("connectStart", "connectEnd"),
            ssl=span("sslStart", "sslEnd"),
            send=max(0.0, span("sendStart", "sendEnd")),
            wait=_round(max(0.0, t("receiveHeadersEnd") - t("sendEnd"))),
            receive=_round(receive),
        )

    wait = 0.0
    if hop.response_timestamp is not None:
        wait = max(0.0, _ms(hop.response_timestamp - start))
    receive = 0.0
    if end is not None:
        receive = max(0.0, _ms(end - (hop.response_timestamp or start)))
    return HarTimings(send=0, wait=_round(wait), receive=_round(receive))


def _total_time(timings: HarTimings) -> float:
    phases = (timings.blocked, timings.dns, timings.connect, timings.send, timings.wait, timings.receive)
    return _round(sum(p for p in phases if p > 0))


# --- small converters ---

def _headers(raw: Any) -> List[HarNameValue]:
    if not isinstance(raw, dict):
        return []
    headers = []
    for name, value in raw.items():
        # CDP joins repeated headers with newlines
        for line in str(value).split("\n"):
            headers.append(HarNameValue(name=str(name), value=line))
    return headers


def _header_value(headers: List[HarNameValue], name: str) -> Optional[str]:
    values = [h.value for h in headers if h.name.lower() == name]
    return "\n".join(values) if values else None


def _request_cookies(header: Optional[str]) -> List[HarCookie]:
    if not header:
        return []
    cookies = []
    for part in header.replace("\n", ";").split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies.append(HarCookie(name=name, value=value))
    return cookies


def _response_cookies(header: Optional[str]) -> List[HarCookie]:
    if not header:
        return []
    cookies = []
    for line in header.split("\n"):
        parts = [p.strip() for p in line.split(";")]
        name, sep, value = parts[0].partition("=")
        if not sep or not name:
            continue
        cookie = HarCookie(name=name, value=value)
        for attribute in parts[1:]:
            key, _, attr_value = attribute.partition("=")
            key = key.lower()
            if key == "path":
                cookie.path = attr_value
            elif key == "domain":
                cookie.domain = attr_value
            elif key == "expires":
                cookie.expires = attr_value
            elif key == "httponly":
                cookie.http_only = True
            elif key == "secure":
                cookie.secure = True
        cookies.append(cookie)
    return cookies


def _http_version(protocol: Any) -> str:
    if not protocol:
        return ""
    protocol = str(protocol)
    if protocol.lower().startswith("http/"):
        return protocol.upper()
    return protocol


def _request_url(payload: Dict[str, Any]) -> str:
    request = payload.get("request")
    if not isinstance(request, dict):
        return ""
    return str(request.get("url") or "")


def _text_size(text: Any) -> int:
    return len(text.encode("utf-8")) if isinstance(text, str) and text else -1


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _server_ip(address: Any) -> Optional[str]:
    if not address:
        return None
    return str(address).strip("[]")


def _iso(epoch_seconds: float) -> str:
    stamp = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _ms(seconds: float) -> float:
    return _round(seconds * 1000)


def _round(value: float) -> float:
    return round(value, 3)


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int:
    number = _as_float(value)
    return int(number) if number is not None else 0
