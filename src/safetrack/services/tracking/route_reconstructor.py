"""
Route Reconstruction

Turns an unordered batch of location reports into a time-ordered route in
which every point carries a display role (start, waypoint, sos, current or
single).
"""

import logging
from typing import Any, Iterable, List, Union

from ...core.errors import MalformedPointError
from ...models.tracking import LocationPoint, PointRole, Route, RoutePoint


logger = logging.getLogger(__name__)

RawPoint = Union[LocationPoint, dict]


def decode_points(raw_points: Iterable[RawPoint]) -> List[LocationPoint]:
    """
    Decode location reports, dropping malformed ones

    Payload dicts and LocationPoint objects go through the same checks.
    Malformed entries are logged and skipped. Errors raised while iterating
    the collection itself propagate.
    """
    points = []
    dropped = 0

    for raw in raw_points:
        try:
            if isinstance(raw, LocationPoint):
                points.append(raw.validated())
            else:
                points.append(LocationPoint.from_dict(raw))
        except MalformedPointError as e:
            dropped += 1
            logger.debug(f"Dropping malformed location report: {e}")

    if dropped:
        logger.info(f"Dropped {dropped} malformed location report(s)")

    return points


def assign_roles(ordered: List[LocationPoint]) -> Route:
    """
    Annotate time-ordered points with their route roles

    Start and current take priority over the SOS flag: an SOS reported at
    the latest moment still shows where the device is right now.
    """
    if not ordered:
        return Route()

    if len(ordered) == 1:
        return Route((RoutePoint(ordered[0], PointRole.SINGLE),))

    last = len(ordered) - 1
    annotated = []
    for index, point in enumerate(ordered):
        if index == 0:
            role = PointRole.START
        elif index == last:
            role = PointRole.CURRENT
        elif point.is_sos:
            role = PointRole.SOS
        else:
            role = PointRole.WAYPOINT
        annotated.append(RoutePoint(point, role))

    return Route(tuple(annotated))


def reconstruct(raw_points: Iterable[Any]) -> Route:
    """
    Reconstruct a device route from raw location reports

    Args:
        raw_points: Location reports in store order; payload dicts or
            LocationPoint objects, possibly unordered or malformed

    Returns:
        Route sorted ascending by recorded time. Ties keep store order.
    """
    points = decode_points(raw_points)
    # sorted() is stable, so burst reports sharing a timestamp keep store order
    ordered = sorted(points, key=lambda point: point.recorded_at)
    return assign_roles(ordered)
