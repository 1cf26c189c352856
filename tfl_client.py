# TfL unified API access. Every call returns an UpstreamResult instead of raising.

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Tuple, TypedDict
from urllib.parse import quote

import requests

import tube_settings as settings

log = logging.getLogger("tube_proxy.tfl")

OK = "ok"
NOT_FOUND = "not_found"
FAILED = "failed"


class LineRef(TypedDict, total=False):
    id: str
    name: str
    modeName: str


class StopPoint(TypedDict, total=False):
    id: str
    naptanId: str
    commonName: str
    name: str
    stopType: str
    lat: float
    lon: float
    modes: List[str]
    lines: List[LineRef]
    children: List["StopPoint"]


class Arrival(TypedDict, total=False):
    vehicleId: str
    destinationName: str
    towards: str
    direction: str
    expectedArrival: str
    timeToStation: int
    currentLocation: str
    platformName: str


class LineStatusEntry(TypedDict, total=False):
    statusSeverity: int
    statusSeverityDescription: str
    reason: str


class LineStatusRecord(TypedDict, total=False):
    id: str
    lineStatuses: List[LineStatusEntry]


@dataclass
class UpstreamResult:
    outcome: str
    status: int
    data: Any = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == OK

    @property
    def not_found(self) -> bool:
        return self.outcome == NOT_FOUND


session = requests.Session()


def build_path(*segments: str) -> str:
    return "".join("/" + quote(str(segment), safe="") for segment in segments)


def tfl_get_json(path: str) -> UpstreamResult:
    params: Dict[str, str] = {}
    if settings.TFL_HAS_KEYS:
        params["app_id"] = settings.TFL_APP_ID or ""
        params["app_key"] = settings.TFL_APP_KEY or ""
    url = f"{settings.TFL_BASE}{path}"
    timeout: Tuple[float, float] = (
        settings.TFL_CONNECT_TIMEOUT_SEC,
        settings.TFL_READ_TIMEOUT_SEC,
    )

    try:
        resp = session.get(
            url,
            params=params or None,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
    except requests.RequestException as exc:
        log.warning("TfL request to %s failed: %s", path, exc)
        return UpstreamResult(FAILED, 0, message=f"TfL request failed: {exc}")

    if resp.status_code == 404:
        log.info("TfL returned 404 for %s", path)
        return UpstreamResult(NOT_FOUND, 404, message="TfL API returned status 404")

    if not 200 <= resp.status_code < 300:
        log.warning("TfL returned %s for %s", resp.status_code, path)
        return UpstreamResult(
            FAILED, resp.status_code, message=f"TfL API returned status {resp.status_code}"
        )

    try:
        data = resp.json()
    except ValueError:
        log.warning("TfL returned invalid JSON for %s", path)
        return UpstreamResult(FAILED, resp.status_code, message="TfL API returned invalid JSON")
    return UpstreamResult(OK, resp.status_code, data=data)


def get_stop_points_by_mode(mode: str) -> UpstreamResult:
    return tfl_get_json(build_path("StopPoint", "Mode", mode))


def get_stop_point(stop_id: str) -> UpstreamResult:
    return tfl_get_json(build_path("StopPoint", stop_id))


def get_line_arrivals(line_id: str, stop_id: str) -> UpstreamResult:
    return tfl_get_json(build_path("Line", line_id, "Arrivals", stop_id))


def get_line_status(line_id: str) -> UpstreamResult:
    return tfl_get_json(build_path("Line", line_id, "Status"))


def child_serves_line(child: StopPoint, line_id: str) -> bool:
    return any(line.get("id") == line_id for line in child.get("lines") or [])


def get_arrivals_with_fallback(line_id: str, stop_id: str) -> UpstreamResult:
    """Fetch arrivals for a stop, falling back to its child stop points.

    Hub stations often report no arrivals on the parent id; the predictions
    live on a child stop point that serves the line. Children are tried in
    order and the first non-empty answer wins. When nothing turns up the
    empty primary result is returned.
    """
    primary = get_line_arrivals(line_id, stop_id)
    if not primary.ok or primary.data:
        return primary

    station = get_stop_point(stop_id)
    if not station.ok or not isinstance(station.data, dict):
        log.warning("Child stop lookup for %s skipped: %s", stop_id, station.message)
        return primary

    for child in station.data.get("children") or []:
        if not child_serves_line(child, line_id):
            continue
        child_id = child.get("naptanId") or child.get("id")
        if not child_id:
            continue
        result = get_line_arrivals(line_id, child_id)
        if result.ok and result.data:
            log.info("Arrivals for %s/%s found on child stop %s", line_id, stop_id, child_id)
            return result
    return primary
