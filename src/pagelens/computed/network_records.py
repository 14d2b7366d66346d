"""
NetworkRecords: request records rebuilt from a devtools protocol log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from pagelens.computed.artifact import ComputedContext, computed_artifact
from pagelens.lib.url_utils import (
    hostname_of,
    is_like_localhost,
    is_non_network_protocol,
    is_secure_scheme,
    scheme_of,
)

logger = structlog.get_logger(__name__)

REDIRECT_SUFFIX = ":redirect"


@dataclass
class NetworkRequest:
    """One request/response exchange. A redirect chain yields one record per hop."""

    request_id: str
    url: str
    request_method: str = "GET"
    resource_type: Optional[str] = None
    mime_type: str = ""
    status_code: int = -1
    protocol: str = ""
    transfer_size: int = 0
    resource_size: int = 0
    start_time: float = 0.0
    end_time: float = -1.0
    response_received: bool = False
    finished: bool = False
    failed: bool = False
    error_text: Optional[str] = None
    from_disk_cache: bool = False
    frame_id: Optional[str] = None
    redirect_source: Optional[str] = None

    @property
    def scheme(self) -> str:
        return scheme_of(self.url)

    @property
    def is_non_network(self) -> bool:
        return is_non_network_protocol(self.protocol) or is_non_network_protocol(self.url)

    @property
    def is_secure(self) -> bool:
        return is_secure_scheme(self.scheme) or is_like_localhost(hostname_of(self.url))


class _NetworkRecorder:
    """Folds protocol events into NetworkRequest records in log order."""

    def __init__(self) -> None:
        self.records: List[NetworkRequest] = []
        self._active: Dict[str, NetworkRequest] = {}

    def dispatch(self, event: Mapping[str, Any]) -> None:
        method = event.get("method", "")
        if not method.startswith("Network."):
            return
        handler = getattr(self, "_on_" + method.split(".", 1)[1], None)
        if handler is None:
            return
        handler(event.get("params") or {})

    def _on_requestWillBeSent(self, params: Mapping[str, Any]) -> None:
        request_id = params["requestId"]
        request = params.get("request") or {}
        timestamp = float(params.get("timestamp") or 0.0)

        previous = self._active.get(request_id)
        if previous is not None and params.get("redirectResponse") is not None:
            # The previous hop is complete; the new request continues the chain.
            self._apply_response(previous, params["redirectResponse"])
            previous.end_time = timestamp
            previous.finished = True
            new_id = previous.request_id + REDIRECT_SUFFIX
            redirect_source: Optional[str] = previous.request_id
        else:
            new_id = request_id
            redirect_source = None

        record = NetworkRequest(
            request_id=new_id,
            url=request.get("url", ""),
            request_method=request.get("method", "GET"),
            resource_type=params.get("type"),
            start_time=timestamp,
            frame_id=params.get("frameId"),
            redirect_source=redirect_source,
        )
        self._active[request_id] = record
        self.records.append(record)

    def _on_requestServedFromCache(self, params: Mapping[str, Any]) -> None:
        record = self._active.get(params.get("requestId", ""))
        if record is not None:
            record.from_disk_cache = True

    def _on_responseReceived(self, params: Mapping[str, Any]) -> None:
        record = self._active.get(params.get("requestId", ""))
        if record is None:
            return
        if params.get("type"):
            record.resource_type = params["type"]
        self._apply_response(record, params.get("response") or {})

    def _on_dataReceived(self, params: Mapping[str, Any]) -> None:
        record = self._active.get(params.get("requestId", ""))
        if record is None:
            return
        record.resource_size += int(params.get("dataLength") or 0)

    def _on_loadingFinished(self, params: Mapping[str, Any]) -> None:
        record = self._active.get(params.get("requestId", ""))
        if record is None:
            return
        if params.get("encodedDataLength") is not None:
            record.transfer_size = int(params["encodedDataLength"])
        record.end_time = float(params.get("timestamp") or record.start_time)
        record.finished = True

    def _on_loadingFailed(self, params: Mapping[str, Any]) -> None:
        record = self._active.get(params.get("requestId", ""))
        if record is None:
            return
        record.failed = True
        record.error_text = params.get("errorText")
        record.end_time = float(params.get("timestamp") or record.start_time)
        record.finished = True

    @staticmethod
    def _apply_response(record: NetworkRequest, response: Mapping[str, Any]) -> None:
        record.response_received = True
        record.url = response.get("url") or record.url
        record.status_code = int(response.get("status", record.status_code))
        record.mime_type = response.get("mimeType", record.mime_type)
        record.protocol = response.get("protocol", record.protocol)
        record.from_disk_cache = record.from_disk_cache or bool(response.get("fromDiskCache"))
        if response.get("encodedDataLength") is not None:
            record.transfer_size = int(response["encodedDataLength"])


def build_network_records(devtools_log: Sequence[Mapping[str, Any]]) -> List[NetworkRequest]:
    recorder = _NetworkRecorder()
    for event in devtools_log:
        recorder.dispatch(event)
    return recorder.records


@computed_artifact("NetworkRecords")
def network_records(devtools_log: Sequence[Mapping[str, Any]], context: ComputedContext) -> List[NetworkRequest]:
    """Request records rebuilt from a devtools protocol log."""
    records = build_network_records(devtools_log)
    logger.debug("network_records.built", events=len(devtools_log), records=len(records))
    return records
