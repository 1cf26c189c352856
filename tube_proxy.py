#!/usr/bin/env python3
# TfL tube proxy: stations, lines, directions and live trains.

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Any, Dict, List, Optional

from flask import Blueprint, Flask, Response, jsonify, request

import directions
import tfl_client
import tube_settings as settings

log = logging.getLogger("tube_proxy")
logging.basicConfig(level=settings.LOG_LEVEL)

JsonDict = Dict[str, Any]

READ_METHODS = ["GET"]

api = Blueprint("tube", __name__)

app = Flask(__name__)
app.json.sort_keys = False


def add_cache_headers(resp: Response, ttl_sec: int, stale_sec: int) -> Response:
    cache_control = f"s-maxage={ttl_sec}"
    if stale_sec > 0:
        cache_control += f", stale-while-revalidate={stale_sec}"
    resp.headers["Cache-Control"] = cache_control
    return resp


def add_no_cache_headers(resp: Response) -> Response:
    resp.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    return resp


def error_response(status: int, error: str, **context: Any) -> Response:
    payload: JsonDict = {"success": False, "error": error}
    payload.update(context)
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    return resp


def missing_params(required: List[str], **extra: Any) -> Response:
    return error_response(400, "Missing required parameters", required=required, **extra)


def param(name: str, value: Optional[str]) -> Optional[str]:
    return value or request.args.get(name) or None


def method_not_allowed_response() -> Response:
    resp = error_response(405, "Method not allowed")
    resp.headers["Allow"] = ", ".join(READ_METHODS)
    return resp


@app.errorhandler(405)
def method_not_allowed(exc: Exception) -> Response:
    return method_not_allowed_response()


@app.errorhandler(404)
def route_not_found(exc: Exception) -> Response:
    return error_response(404, "Not found", path=request.path)


# Routing adds HEAD to every GET rule; only GET is served.
@api.before_request
def reject_non_get() -> Optional[Response]:
    if request.method not in READ_METHODS:
        return method_not_allowed_response()
    return None


@app.after_request
def add_common_headers(resp: Response) -> Response:
    origin = request.headers.get("Origin")
    if origin and ("*" in settings.CORS_ALLOWED_ORIGINS or origin in settings.CORS_ALLOWED_ORIGINS):
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Vary"] = "Origin"
        resp.headers["Access-Control-Allow-Methods"] = "GET"
        resp.headers["Access-Control-Expose-Headers"] = "Cache-Control, Expires"

    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("Referrer-Policy", "no-referrer")
    return resp


def project_station(station: tfl_client.StopPoint) -> JsonDict:
    return {
        "id": station.get("id") or station.get("naptanId"),
        "name": station.get("commonName") or station.get("name"),
        "lat": station.get("lat"),
        "lon": station.get("lon"),
        "modes": station.get("modes") or [],
        "lines": [
            {"id": line.get("id"), "name": line.get("name")}
            for line in station.get("lines") or []
        ],
    }


@api.route("/stations", methods=READ_METHODS, provide_automatic_options=False)
def list_stations() -> Response:
    mode = request.args.get("mode") or settings.STATIONS_MODE
    try:
        result = tfl_client.get_stop_points_by_mode(mode)
        if result.not_found:
            return error_response(404, "Transport mode not found", mode=mode)
        if not result.ok:
            return error_response(500, "Failed to fetch tube stations", message=result.message)

        data = result.data if isinstance(result.data, dict) else {}
        stations = [
            project_station(station)
            for station in data.get("stopPoints") or []
            if station.get("stopType") == settings.STATIONS_STOP_TYPE
        ]
    except Exception as exc:
        log.exception("Error fetching stations")
        return error_response(500, "Failed to fetch tube stations", message=str(exc))

    resp = jsonify({"success": True, "count": len(stations), "stations": stations})
    return add_cache_headers(resp, settings.METADATA_CACHE_SEC, settings.CACHE_STALE_SEC)


@api.route("/lines", endpoint="lines_index", methods=READ_METHODS, provide_automatic_options=False)
@api.route("/lines/<station_id>", methods=READ_METHODS, provide_automatic_options=False)
def station_lines(station_id: Optional[str] = None) -> Response:
    station_id = param("stationId", station_id)
    if not station_id:
        return missing_params(["stationId"])

    try:
        result = tfl_client.get_stop_point(station_id)
        if result.not_found:
            return error_response(404, "Station not found", stationId=station_id)
        if not result.ok:
            return error_response(
                500, "Failed to fetch lines for station", message=result.message
            )

        data = result.data if isinstance(result.data, dict) else {}
        lines = [
            {"id": line.get("id"), "name": line.get("name"), "modeName": line.get("modeName")}
            for line in data.get("lines") or []
        ]
    except Exception as exc:
        log.exception("Error fetching lines for %s", station_id)
        return error_response(500, "Failed to fetch lines for station", message=str(exc))

    resp = jsonify(
        {
            "success": True,
            "stationId": station_id,
            "stationName": data.get("commonName") or data.get("name"),
            "count": len(lines),
            "lines": lines,
        }
    )
    return add_cache_headers(resp, settings.METADATA_CACHE_SEC, settings.CACHE_STALE_SEC)


@api.route(
    "/directions", endpoint="directions_index", methods=READ_METHODS, provide_automatic_options=False
)
@api.route(
    "/directions/<station_id>",
    endpoint="directions_station",
    methods=READ_METHODS,
    provide_automatic_options=False,
)
@api.route("/directions/<station_id>/<line>", methods=READ_METHODS, provide_automatic_options=False)
def station_directions(station_id: Optional[str] = None, line: Optional[str] = None) -> Response:
    station_id = param("stationId", station_id)
    line = param("line", line)
    if not station_id or not line:
        return missing_params(["stationId", "line"])

    try:
        result = tfl_client.get_arrivals_with_fallback(line, station_id)
        if result.not_found:
            return error_response(
                404, "Station or line not found", stationId=station_id, line=line
            )
        if not result.ok:
            return error_response(500, "Failed to fetch directions", message=result.message)

        arrivals = result.data if isinstance(result.data, list) else []
        grouped = directions.group_by_direction(arrivals, settings.DIRECTIONS_TRAIN_LIMIT)
    except Exception as exc:
        log.exception("Error fetching directions for %s/%s", station_id, line)
        return error_response(500, "Failed to fetch directions", message=str(exc))

    resp = jsonify(
        {
            "success": True,
            "stationId": station_id,
            "line": line,
            "count": len(grouped),
            "totalArrivals": len(arrivals),
            "directions": grouped,
        }
    )
    return add_cache_headers(resp, settings.DIRECTIONS_CACHE_SEC, settings.CACHE_STALE_SEC)


def fetch_line_status(line: str) -> JsonDict:
    result = tfl_client.get_line_status(line)
    if not result.ok:
        log.warning("Line status for %s unavailable: %s", line, result.message)
        return dict(directions.DEFAULT_LINE_STATUS)
    return directions.summarize_line_status(result.data)


@api.route("/trains", endpoint="trains_index", methods=READ_METHODS, provide_automatic_options=False)
@api.route(
    "/trains/<station_id>",
    endpoint="trains_station",
    methods=READ_METHODS,
    provide_automatic_options=False,
)
@api.route(
    "/trains/<station_id>/<line>",
    endpoint="trains_line",
    methods=READ_METHODS,
    provide_automatic_options=False,
)
@api.route(
    "/trains/<station_id>/<line>/<direction>", methods=READ_METHODS, provide_automatic_options=False
)
def live_trains(
    station_id: Optional[str] = None,
    line: Optional[str] = None,
    direction: Optional[str] = None,
) -> Response:
    station_id = param("stationId", station_id)
    line = param("line", line)
    direction = param("direction", direction)
    if not station_id or not line or not direction:
        return missing_params(
            ["stationId", "line", "direction"],
            example="/api/trains/940GZZLUOXC/central/Eastbound",
        )

    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            arrivals_future = pool.submit(tfl_client.get_line_arrivals, line, station_id)
            status_future = pool.submit(fetch_line_status, line)
            result = arrivals_future.result()
            try:
                line_status = status_future.result()
            except Exception as exc:
                log.warning("Line status for %s failed: %s", line, exc)
                line_status = dict(directions.DEFAULT_LINE_STATUS)

        if result.not_found:
            return error_response(
                404, "Station or line not found", stationId=station_id, line=line
            )
        if not result.ok:
            return error_response(500, "Failed to fetch train arrivals", message=result.message)

        arrivals = result.data if isinstance(result.data, list) else []
        trains = directions.trains_for_direction(arrivals, direction, settings.TRAINS_LIMIT)
    except Exception as exc:
        log.exception("Error fetching trains for %s/%s/%s", station_id, line, direction)
        return error_response(500, "Failed to fetch train arrivals", message=str(exc))

    payload: JsonDict = {
        "success": True,
        "stationId": station_id,
        "line": line,
        "direction": direction,
        "lineStatus": line_status,
        "count": len(trains),
        "trains": trains,
    }
    if not trains:
        payload["message"] = "No trains currently arriving in this direction"
    return add_no_cache_headers(jsonify(payload))


app.register_blueprint(api)
app.register_blueprint(api, url_prefix="/api", name="api")


if __name__ == "__main__":
    app.run(host=settings.APP_HOST, port=settings.APP_PORT)
