"""
Unit tests for the command-line application
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from safetrack.main import SafeTrackApplication, build_parser, main
from safetrack.models.alert import ActorRole
from tests.base import ServiceTestCase
from tests.mocks.gateway_mocks import make_alert


class TestParser:
    """Test argument parsing"""

    def test_track(self):
        args = build_parser().parse_args(["track", "dev-1", "--online"])
        assert args.command == "track"
        assert args.device_id == "dev-1"
        assert args.online is True

    def test_sos(self):
        args = build_parser().parse_args(["sos", "dev-1", "--lat", "28.6", "--lng", "77.2"])
        assert (args.lat, args.lng, args.accuracy) == (28.6, 77.2, None)

    def test_alerts_role_choices(self):
        assert build_parser().parse_args(["alerts", "--role", "police"]).role == "police"
        with pytest.raises(SystemExit):
            build_parser().parse_args(["alerts", "--role", "firefighter"])

    def test_duty_requires_responder_role(self):
        args = build_parser().parse_args(["duty", "--role", "hospital", "--lat", "28.6", "--lng", "77.2"])
        assert (args.role, args.lat, args.lng) == ("hospital", 28.6, 77.2)
        with pytest.raises(SystemExit):
            build_parser().parse_args(["duty", "--role", "user", "--lat", "0", "--lng", "0"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestApplicationCommands(ServiceTestCase):
    """Test command handlers with the mock backend wired in"""

    def setup_method(self):
        super().setup_method()
        self.app = SafeTrackApplication()
        self.app.api = self.api
        self.app.config_manager = Mock()
        self.app.config_manager.get_location_timeout.return_value = 1

    @pytest.mark.asyncio
    async def test_sos_command(self, capsys):
        code = await self.app.run_sos("dev-1", 28.6, 77.2, accuracy=5.0)

        assert code == 0
        assert "2 responders notified" in capsys.readouterr().out
        assert self.api.calls_to("create_sos") == [("create_sos", 28.6, 77.2)]

    @pytest.mark.asyncio
    async def test_sos_command_failure(self):
        from safetrack.core.errors import ApiError
        self.api.sos_error = ApiError("down", status=500)

        assert await self.app.run_sos("dev-1", 28.6, 77.2, accuracy=None) == 1

    @pytest.mark.asyncio
    async def test_alerts_command(self, capsys):
        self.api.alert_feeds["hospital"] = [make_alert("a1", currentSearchRadius=3000)]

        code = await self.app.run_alerts(ActorRole.HOSPITAL)

        out = capsys.readouterr().out
        assert code == 0
        assert "a1" in out
        assert "3km" in out
        assert "1 alerts: 1 pending" in out


    @pytest.mark.asyncio
    async def test_duty_command(self, capsys):
        self.add_patch("safetrack.main.signal.signal")
        self.app.config_manager.get_on_duty_interval.return_value = 1
        self.app.config_manager.get_min_distance_meters.return_value = 50
        self.app.shutdown_event.set()

        code = await self.app.run_duty(ActorRole.POLICE, 28.6, 77.2, accuracy=None)

        out = capsys.readouterr().out
        assert code == 0
        assert "On duty as police" in out
        assert "Off duty" in out
        assert self.api.calls_to("toggle_on_duty") == [
            ("toggle_on_duty", True, 28.6, 77.2),
            ("toggle_on_duty", False, None, None),
        ]

    @pytest.mark.asyncio
    async def test_duty_command_rejected(self, capsys):
        from safetrack.core.errors import ApiError
        self.api.on_duty_error = ApiError("HTTP 403", status=403, payload={"message": "Forbidden"})
        self.app.config_manager.get_on_duty_interval.return_value = 1
        self.app.config_manager.get_min_distance_meters.return_value = 50

        code = await self.app.run_duty(ActorRole.HOSPITAL, 28.6, 77.2, accuracy=None)

        assert code == 1
        assert "Could not go on duty: Forbidden" in capsys.readouterr().out

class TestMain:
    """Test the console entry point"""

    def test_configuration_error_exit_code(self, temp_dir):
        (temp_dir / "config.yaml").write_text("api:\n  base_url: nope\n")

        assert main(["--config-dir", str(temp_dir), "alerts"]) == 2

    def test_runs_command(self):
        with patch("safetrack.main.run", new=AsyncMock(return_value=0)) as run:
            assert main(["alerts", "--role", "admin"]) == 0
        assert run.await_args.args[0].role == "admin"
