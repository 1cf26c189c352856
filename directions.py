# Direction inference and grouping of arrival predictions.

import re
from typing import Any, Dict, Iterable, List, Optional

from tfl_client import Arrival, LineStatusRecord

JsonDict = Dict[str, Any]

UNKNOWN = "Unknown"

_BOUND_PREFIX = re.compile(r"^(\w+bound)", re.IGNORECASE)
_COMPASS_PREFIX = re.compile(r"^(East|West|North|South)(?:bound)?", re.IGNORECASE)
_COMPASS_ANYWHERE = re.compile(r"(East|West|North|South)(?:bound)?", re.IGNORECASE)

# Checked in this order; a terminus in two lists resolves to the earlier one.
TERMINALS = (
    ("Eastbound", ("Shenfield", "Abbey Wood", "Epping", "Hainault", "Ealing Broadway", "Barking")),
    ("Westbound", ("Reading", "Heathrow", "West Ruislip", "Uxbridge", "Edgware")),
    ("Northbound", ("High Barnet", "Edgware", "Mill Hill East", "Cockfosters")),
    ("Southbound", ("Morden", "Wimbledon", "Brixton")),
)

DEFAULT_LINE_STATUS: JsonDict = {
    "statusSeverity": 10,
    "statusSeverityDescription": "Good Service",
    "reason": None,
}


def direction_from_platform(platform_name: Optional[str]) -> Optional[str]:
    if not platform_name or platform_name == UNKNOWN:
        return None
    match = _BOUND_PREFIX.match(platform_name)
    if match:
        return match.group(1)
    # "East", "Westbound" with no separator
    match = _COMPASS_PREFIX.match(platform_name)
    if match:
        return match.group(0)
    # "Platform 1 Westbound"
    match = _COMPASS_ANYWHERE.search(platform_name)
    if match:
        return match.group(0)
    return None


def direction_from_terminus(towards: Optional[str]) -> Optional[str]:
    if not towards:
        return None
    for direction, terminals in TERMINALS:
        if any(terminal in towards for terminal in terminals):
            return direction
    return None


def infer_direction(
    platform_name: Optional[str],
    fallback_direction: Optional[str] = None,
    towards: Optional[str] = None,
) -> str:
    """Best-effort compass direction for one arrival.

    Tries the platform name, then known termini in ``towards``, then the
    upstream direction, and finally whatever label is left.
    """
    direction = direction_from_platform(platform_name) or direction_from_terminus(towards)
    if direction:
        return direction
    if fallback_direction and fallback_direction != UNKNOWN:
        return fallback_direction
    if towards:
        return towards
    return (platform_name or "").split(" - ")[0] or UNKNOWN


def arrival_direction(arrival: Arrival) -> str:
    return infer_direction(
        arrival.get("platformName") or UNKNOWN,
        arrival.get("direction"),
        arrival.get("towards"),
    )


def _time_to_station(item: JsonDict) -> float:
    value = item.get("timeToStation")
    if isinstance(value, (int, float)):
        return value
    return float("inf")


def sort_by_arrival(items: Iterable[JsonDict]) -> List[JsonDict]:
    # sorted() is stable; entries without a prediction go last.
    return sorted(items, key=_time_to_station)


def train_summary(arrival: Arrival) -> JsonDict:
    return {
        "vehicleId": arrival.get("vehicleId"),
        "destinationName": arrival.get("destinationName"),
        "towards": arrival.get("towards"),
        "expectedArrival": arrival.get("expectedArrival"),
        "timeToStation": arrival.get("timeToStation"),
        "currentLocation": arrival.get("currentLocation"),
        "platformName": arrival.get("platformName"),
    }


def group_by_direction(arrivals: Iterable[Arrival], limit: int = 5) -> List[JsonDict]:
    buckets: Dict[str, JsonDict] = {}
    for arrival in arrivals:
        direction = arrival_direction(arrival)
        bucket = buckets.get(direction)
        if bucket is None:
            bucket = {"platforms": {}, "destinations": {}, "trains": []}
            buckets[direction] = bucket
        bucket["platforms"][arrival.get("platformName") or UNKNOWN] = None
        destination = arrival.get("destinationName")
        if destination:
            bucket["destinations"][destination] = None
        bucket["trains"].append(train_summary(arrival))

    return [
        {
            "direction": direction,
            "platforms": list(bucket["platforms"]),
            "destinations": list(bucket["destinations"]),
            "nextTrains": sort_by_arrival(bucket["trains"])[:limit],
        }
        for direction, bucket in buckets.items()
    ]


def trains_for_direction(
    arrivals: Iterable[Arrival], direction: str, limit: int = 4
) -> List[JsonDict]:
    wanted = direction.lower()
    matching = [a for a in arrivals if arrival_direction(a).lower() == wanted]
    return [
        {
            "position": index + 1,
            "destinationName": arrival.get("destinationName"),
            "timeToStation": arrival.get("timeToStation"),
            "expectedArrival": arrival.get("expectedArrival"),
            "platformName": arrival.get("platformName"),
            "currentLocation": arrival.get("currentLocation"),
            "towards": arrival.get("towards"),
        }
        for index, arrival in enumerate(sort_by_arrival(matching)[:limit])
    ]


def summarize_line_status(records: Optional[List[LineStatusRecord]]) -> JsonDict:
    if not records or not isinstance(records, list):
        return dict(DEFAULT_LINE_STATUS)
    statuses = records[0].get("lineStatuses") or []
    if not statuses:
        return dict(DEFAULT_LINE_STATUS)
    status = statuses[0]
    severity = status.get("statusSeverity")
    return {
        "statusSeverity": severity if severity is not None else DEFAULT_LINE_STATUS["statusSeverity"],
        "statusSeverityDescription": status.get("statusSeverityDescription")
        or DEFAULT_LINE_STATUS["statusSeverityDescription"],
        "reason": status.get("reason") or None,
    }
