"""HAR (HTTP Archive) 1.2 document models.

Field names follow Python conventions; the HAR names are aliases, so dump
with ``by_alias=True`` (see :meth:`HarDocument.to_dict`). Non-standard fields
use the leading-underscore convention Chrome DevTools uses in its own exports.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HarModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HarNameValue(HarModel):
    name: str
    value: str


class HarCookie(HarModel):
    name: str
    value: str
    path: Optional[str] = None
    domain: Optional[str] = None
    expires: Optional[str] = None
    http_only: Optional[bool] = Field(None, alias="httpOnly")
    secure: Optional[bool] = None


class HarPostData(HarModel):
    mime_type: str = Field("", alias="mimeType")
    text: str = ""
    params: List[HarNameValue] = Field(default_factory=list)


class HarRequest(HarModel):
    method: str
    url: str
    http_version: str = Field("", alias="httpVersion")
    cookies: List[HarCookie] = Field(default_factory=list)
    headers: List[HarNameValue] = Field(default_factory=list)
    query_string: List[HarNameValue] = Field(default_factory=list, alias="queryString")
    post_data: Optional[HarPostData] = Field(None, alias="postData")
    headers_size: int = Field(-1, alias="headersSize")
    body_size: int = Field(-1, alias="bodySize")


class HarContent(HarModel):
    size: int = 0
    compression: Optional[int] = None
    mime_type: str = Field("x-unknown", alias="mimeType")


class HarResponse(HarModel):
    status: int = 0
    status_text: str = Field("", alias="statusText")
    http_version: str = Field("", alias="httpVersion")
    cookies: List[HarCookie] = Field(default_factory=list)
    headers: List[HarNameValue] = Field(default_factory=list)
    content: HarContent = Field(default_factory=HarContent)
    redirect_url: str = Field("", alias="redirectURL")
    headers_size: int = Field(-1, alias="headersSize")
    body_size: int = Field(-1, alias="bodySize")
    transfer_size: Optional[int] = Field(None, alias="_transferSize")
    error: Optional[str] = Field(None, alias="_error")


class HarTimings(HarModel):
    blocked: float = -1
    dns: float = -1
    connect: float = -1
    send: float = 0
    wait: float = 0
    receive: float = 0
    ssl: float = -1


class HarEntry(HarModel):
    pageref: Optional[str] = None
    started_date_time: str = Field(alias="startedDateTime")
    time: float = 0
    request: HarRequest
    response: HarResponse
    cache: Dict[str, Any] = Field(default_factory=dict)
    timings: HarTimings = Field(default_factory=HarTimings)
    server_ip_address: Optional[str] = Field(None, alias="serverIPAddress")
    connection: Optional[str] = None
    from_cache: Optional[str] = Field(None, alias="_fromCache")
    priority: Optional[str] = Field(None, alias="_priority")
    resource_type: Optional[str] = Field(None, alias="_resourceType")


class HarPageTimings(HarModel):
    on_content_load: float = Field(-1, alias="onContentLoad")
    on_load: float = Field(-1, alias="onLoad")


class HarPage(HarModel):
    started_date_time: str = Field(alias="startedDateTime")
    id: str
    title: str = ""
    page_timings: HarPageTimings = Field(default_factory=HarPageTimings, alias="pageTimings")


class HarCreator(HarModel):
    name: str = "page-perf-capture"
    version: str = "0.1.0"


class HarLog(HarModel):
    version: str = "1.2"
    creator: HarCreator = Field(default_factory=HarCreator)
    pages: List[HarPage] = Field(default_factory=list)
    entries: List[HarEntry] = Field(default_factory=list)


class HarDocument(HarModel):
    """Top-level HAR file wrapper."""

    log: HarLog = Field(default_factory=HarLog)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
