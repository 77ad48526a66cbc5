"""
SafeTrack Main Application Entry Point

Command-line front end for the SafeTrack client:
- track: follow a device's route live until interrupted
- sos: trigger an SOS from a fixed position
- alerts: print the alert feed for a role
- duty: keep a responder on duty from a fixed position until interrupted
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .core.api_client import ApiClient
from .core.config import ConfigurationManager
from .core.errors import ConfigurationError
from .core.logging import get_logger, initialize_logging
from .models.alert import ActorRole
from .services.emergency import AlertFeed, AlertLifecycle, AlertTriggerWorkflow
from .services.tracking import LiveTrackingService, OnDutyTracker, StaticLocationProvider
from .services.tracking.live_session import FitToRoute


class SafeTrackApplication:
    """Wires configuration, logging and the API client to the services"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.config_manager: Optional[ConfigurationManager] = None
        self.api: Optional[ApiClient] = None
        self.tracking: Optional[LiveTrackingService] = None
        self.logger = None

        self.running = False
        self.shutdown_event = asyncio.Event()

    async def initialize(self):
        """Load configuration, set up logging and open the API session"""
        self.config_manager = ConfigurationManager(self.config_dir)
        self.config_manager.load_config()

        initialize_logging(self.config_manager.config)
        self.logger = get_logger('main')

        self.logger.info("SafeTrack starting up...")
        self.logger.info(f"Version: {self.config_manager.get('app.version', '1.0.0')}")
        self.logger.info(f"Backend: {self.config_manager.get('api.base_url')}")

        self.api = ApiClient.from_config(self.config_manager)
        await self.api.start()

        self.tracking = LiveTrackingService.from_config(self.api, self.config_manager)
        self.running = True

    async def shutdown(self):
        """Close sessions and release the HTTP session"""
        if not self.running:
            return
        self.running = False

        if self.tracking:
            await self.tracking.close_all()
        if self.api:
            await self.api.close()

        self.logger.info("SafeTrack shutdown complete")

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}")
        self.shutdown_event.set()

    def _log_fit(self, event: FitToRoute):
        self.logger.info(f"Route for {event.device_id} spans {len(event.coordinates)} points")

    def _install_signal_handlers(self):
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    async def run_track(self, device_id: str, is_online: bool) -> int:
        self._install_signal_handlers()

        session = await self.tracking.open(device_id, is_online, on_fit_to_route=self._log_fit)
        route = session.route
        self.logger.info(f"Loaded {len(route)} points for device {device_id}")
        if route.current:
            self.logger.info(
                f"Current position: {route.current.point.coordinate} "
                f"({route.current.point.place_label})"
            )

        if not session.is_polling:
            self.logger.info("Device is offline, auto-refresh disabled")
            await self.tracking.close(session)
            return 0

        await self.shutdown_event.wait()
        await self.tracking.close(session)
        return 0

    async def run_sos(self, device_id: str, latitude: float, longitude: float,
                      accuracy: Optional[float]) -> int:
        provider = StaticLocationProvider(latitude, longitude, accuracy=accuracy)
        workflow = AlertTriggerWorkflow.from_config(self.api, provider, self.config_manager)

        result = await workflow.trigger(device_id)
        print(result.message)
        if result.supplementary_write_failed:
            print("Warning: SOS location could not be added to the device route")
        return 0 if result.succeeded else 1

    async def run_alerts(self, role: ActorRole) -> int:
        lifecycle = AlertLifecycle(self.api, role)
        feed = AlertFeed(self.api, lifecycle)

        alerts = await feed.load(role)
        if feed.error:
            print(f"Failed to load alerts: {feed.error}")
            return 1

        for alert in alerts:
            created = alert.created_at.isoformat() if alert.created_at else "unknown time"
            print(f"[{alert.status.value:>8}] {alert.alert_type} {alert.id} ({alert.source.value}) {created}")
            view = lifecycle.view(alert.id)
            if view.search_radius_label:
                print(f"           search radius: {view.search_radius_label}")

        counts = feed.counts()
        print(
            f"{counts['total']} alerts: {counts['pending']} pending, "
            f"{counts['assigned']} assigned, {counts['resolved']} resolved"
        )
        return 0

    async def run_duty(self, role: ActorRole, latitude: float, longitude: float,
                       accuracy: Optional[float]) -> int:
        provider = StaticLocationProvider(latitude, longitude, accuracy=accuracy)
        tracker = OnDutyTracker.from_config(self.api, provider, role, self.config_manager)

        if not await tracker.toggle():
            print(f"Could not go on duty: {tracker.error}")
            return 1
        print(f"On duty as {role.value} at {latitude}, {longitude}")

        self._install_signal_handlers()
        await self.shutdown_event.wait()

        if await tracker.toggle():
            print(f"Could not go off duty: {tracker.error}")
            await tracker.stop()
            return 1
        print("Off duty")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='safetrack', description='SafeTrack device tracking client')
    parser.add_argument('--config-dir', default='config', help='Configuration directory')

    subparsers = parser.add_subparsers(dest='command', required=True)

    track = subparsers.add_parser('track', help='Follow a device route live')
    track.add_argument('device_id')
    track.add_argument('--online', action='store_true', help='Device is online (enables auto-refresh)')

    sos = subparsers.add_parser('sos', help='Trigger an SOS from a fixed position')
    sos.add_argument('device_id')
    sos.add_argument('--lat', type=float, required=True)
    sos.add_argument('--lng', type=float, required=True)
    sos.add_argument('--accuracy', type=float)

    alerts = subparsers.add_parser('alerts', help='Show the alert feed')
    alerts.add_argument('--role', choices=[role.value for role in ActorRole], default=ActorRole.USER.value)

    duty = subparsers.add_parser('duty', help='Go on duty as a responder until interrupted')
    duty.add_argument('--role', choices=[ActorRole.POLICE.value, ActorRole.HOSPITAL.value], required=True)
    duty.add_argument('--lat', type=float, required=True)
    duty.add_argument('--lng', type=float, required=True)
    duty.add_argument('--accuracy', type=float)

    return parser


async def run(args: argparse.Namespace) -> int:
    app = SafeTrackApplication(args.config_dir)
    await app.initialize()
    try:
        if args.command == 'track':
            return await app.run_track(args.device_id, args.online)
        if args.command == 'sos':
            return await app.run_sos(args.device_id, args.lat, args.lng, args.accuracy)
        if args.command == 'duty':
            return await app.run_duty(ActorRole(args.role), args.lat, args.lng, args.accuracy)
        return await app.run_alerts(ActorRole(args.role))
    finally:
        await app.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point"""
    args = build_parser().parse_args(argv)

    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
