"""
Unit tests for route reconstruction
"""

from datetime import datetime, timedelta, timezone

import pytest

from safetrack.models.tracking import LocationPoint, PointRole
from safetrack.services.tracking.route_reconstructor import assign_roles, decode_points, reconstruct
from tests.mocks.gateway_mocks import make_point


class TestReconstruct:
    """Test ordering and role assignment"""

    def test_empty_history(self):
        route = reconstruct([])
        assert len(route) == 0
        assert not route
        assert route.start is None
        assert route.current is None

    def test_single_point(self):
        route = reconstruct([make_point(0)])
        assert route.roles == [PointRole.SINGLE]
        assert route.current.role == PointRole.SINGLE

    def test_single_sos_point_is_single(self):
        route = reconstruct([make_point(0, isSOS=True)])
        assert route.roles == [PointRole.SINGLE]

    def test_out_of_order_points_are_sorted(self, sample_history):
        route = reconstruct(sample_history)

        assert [rp.point.id for rp in route] == ["p1", "p2", "p3", "p4"]
        assert route.roles == [
            PointRole.START, PointRole.SOS, PointRole.WAYPOINT, PointRole.CURRENT
        ]
        assert route.start.point.place_label == "India Gate, New Delhi"

    def test_two_points(self):
        route = reconstruct([make_point(5, _id="b"), make_point(1, _id="a")])
        assert route.roles == [PointRole.START, PointRole.CURRENT]
        assert route.current.point.id == "b"

    def test_sos_at_start_and_end_keep_position_roles(self):
        route = reconstruct([
            make_point(0, isSOS=True),
            make_point(1, isSOS=True),
            make_point(2, isSOS=True),
        ])
        assert route.roles == [PointRole.START, PointRole.SOS, PointRole.CURRENT]
        assert len(route.sos_points) == 1

    def test_equal_timestamps_keep_store_order(self):
        route = reconstruct([
            make_point(3, _id="first"),
            make_point(3, _id="second"),
            make_point(3, _id="third"),
        ])
        assert [rp.point.id for rp in route] == ["first", "second", "third"]

    def test_malformed_points_are_dropped(self):
        raw = [
            make_point(0, _id="ok1"),
            {"latitude": "nan", "longitude": 77.2, "recordedAt": "2024-05-01T12:00:00Z"},
            {"latitude": 28.6, "longitude": 77.2, "recordedAt": "not a date"},
            {"latitude": 95.0, "longitude": 77.2, "recordedAt": "2024-05-01T12:00:00Z"},
            {"longitude": 77.2, "recordedAt": "2024-05-01T12:00:00Z"},
            "garbage",
            make_point(1, _id="ok2"),
        ]
        route = reconstruct(raw)
        assert [rp.point.id for rp in route] == ["ok1", "ok2"]

    def test_all_malformed_gives_empty_route(self):
        assert len(reconstruct([{"latitude": None}, {}])) == 0

    def test_accepts_decoded_points(self):
        point = LocationPoint.from_dict(make_point(0, _id="x"))
        route = reconstruct([point, make_point(1, _id="y")])
        assert route.coordinates() == [(28.6, 77.2), (28.6, 77.2)]
        assert route.start.point is point

    def test_malformed_decoded_points_are_dropped(self):
        at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        route = reconstruct([
            LocationPoint(1.0, 1.0, at, id="a"),
            LocationPoint(float("nan"), 2.0, at + timedelta(seconds=1), id="nan"),
            LocationPoint(2.0, float("inf"), at + timedelta(seconds=2), id="inf"),
            LocationPoint(95.0, 2.0, at + timedelta(seconds=3), id="range"),
            LocationPoint(2.0, 2.0, None, id="untimed"),
            LocationPoint(3.0, 3.0, at + timedelta(seconds=4), id="b"),
        ])

        assert [rp.point.id for rp in route] == ["a", "b"]
        assert route.roles == [PointRole.START, PointRole.CURRENT]
        assert route.coordinates() == [(1.0, 1.0), (3.0, 3.0)]

    def test_naive_decoded_point_taken_as_utc(self):
        route = reconstruct([
            make_point(0, _id="payload"),
            LocationPoint(1.0, 1.0, datetime(2024, 5, 1, 11, 0), id="naive"),
        ])

        assert [rp.point.id for rp in route] == ["naive", "payload"]
        assert route.start.point.recorded_at.tzinfo is not None

    def test_mixed_timezones_order_by_instant(self):
        raw = [
            {"latitude": 1, "longitude": 1, "recordedAt": "2024-05-01T12:30:00+05:30", "_id": "ist"},
            {"latitude": 2, "longitude": 2, "recordedAt": "2024-05-01T07:30:00Z", "_id": "utc"},
        ]
        route = reconstruct(raw)
        # 12:30+05:30 is 07:00Z, earlier than 07:30Z
        assert [rp.point.id for rp in route] == ["ist", "utc"]

    def test_iteration_error_propagates(self):
        def broken():
            yield make_point(0)
            raise RuntimeError("stream broke")

        with pytest.raises(RuntimeError):
            reconstruct(broken())


class TestHelpers:
    """Test decoding and role helpers in isolation"""

    def test_decode_points_counts(self):
        points = decode_points([make_point(0), {"bad": True}])
        assert len(points) == 1

    def test_assign_roles_does_not_reorder(self):
        points = [LocationPoint.from_dict(make_point(m)) for m in (5, 1)]
        route = assign_roles(points)
        assert route.start.point is points[0]
