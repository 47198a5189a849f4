"""Factories for recorded CDP events with realistic payload shapes."""

from capture.events import EventKind, ProtocolEvent

WALL_TIME = 1_700_000_000.0


def request_will_be_sent(
    request_id,
    url,
    method="GET",
    timestamp=1.0,
    wall_time=WALL_TIME,
    frame_id="F1",
    resource_type="Document",
    headers=None,
    post_data=None,
    redirect_response=None,
):
    request = {"url": url, "method": method, "headers": headers or {}, "initialPriority": "VeryHigh"}
    if post_data is not None:
        request["postData"] = post_data
        request["hasPostData"] = True
    payload = {
        "requestId": request_id,
        "loaderId": "L1",
        "documentURL": url,
        "request": request,
        "timestamp": timestamp,
        "wallTime": wall_time,
        "initiator": {"type": "other"},
        "type": resource_type,
        "frameId": frame_id,
    }
    if redirect_response is not None:
        payload["redirectResponse"] = redirect_response
    return ProtocolEvent(EventKind.REQUEST_WILL_BE_SENT, payload)


def response_payload(
    status=200,
    url="https://x/a",
    mime_type="text/html",
    headers=None,
    protocol="h2",
    timing=None,
    from_disk_cache=False,
):
    response = {
        "url": url,
        "status": status,
        "statusText": "OK" if status == 200 else "",
        "headers": headers or {},
        "mimeType": mime_type,
        "connectionId": 42,
        "remoteIPAddress": "[2606:4700::6810:84e5]",
        "remotePort": 443,
        "fromDiskCache": from_disk_cache,
        "encodedDataLength": 120,
        "protocol": protocol,
    }
    if timing is not None:
        response["timing"] = timing
    return response


def response_received(request_id, status=200, timestamp=1.1, resource_type="Document", **response_kwargs):
    return ProtocolEvent(
        EventKind.RESPONSE_RECEIVED,
        {
            "requestId": request_id,
            "loaderId": "L1",
            "timestamp": timestamp,
            "type": resource_type,
            "response": response_payload(status=status, **response_kwargs),
            "frameId": "F1",
        },
    )


def data_received(request_id, data_length, encoded_data_length=0, timestamp=1.15):
    return ProtocolEvent(
        EventKind.DATA_RECEIVED,
        {
            "requestId": request_id,
            "timestamp": timestamp,
            "dataLength": data_length,
            "encodedDataLength": encoded_data_length,
        },
    )


def loading_finished(request_id, encoded_data_length=100, timestamp=1.2):
    return ProtocolEvent(
        EventKind.LOADING_FINISHED,
        {"requestId": request_id, "timestamp": timestamp, "encodedDataLength": encoded_data_length},
    )


def loading_failed(request_id, error_text="net::ERR_CONNECTION_REFUSED", timestamp=1.2, canceled=False):
    return ProtocolEvent(
        EventKind.LOADING_FAILED,
        {
            "requestId": request_id,
            "timestamp": timestamp,
            "type": "Script",
            "errorText": error_text,
            "canceled": canceled,
        },
    )


def served_from_cache(request_id):
    return ProtocolEvent(EventKind.REQUEST_SERVED_FROM_CACHE, {"requestId": request_id})


def priority_changed(request_id, priority, timestamp=1.05):
    return ProtocolEvent(
        EventKind.RESOURCE_CHANGED_PRIORITY,
        {"requestId": request_id, "newPriority": priority, "timestamp": timestamp},
    )


def frame_started_loading(frame_id):
    return ProtocolEvent(EventKind.FRAME_STARTED_LOADING, {"frameId": frame_id})


def frame_attached(frame_id, parent_frame_id):
    return ProtocolEvent(EventKind.FRAME_ATTACHED, {"frameId": frame_id, "parentFrameId": parent_frame_id})


def dom_content_event_fired(timestamp):
    return ProtocolEvent(EventKind.DOM_CONTENT_EVENT_FIRED, {"timestamp": timestamp})


def load_event_fired(timestamp):
    return ProtocolEvent(EventKind.LOAD_EVENT_FIRED, {"timestamp": timestamp})
