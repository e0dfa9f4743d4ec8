from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

from tickrelay.config.loader import load_app_config, resolve_secrets_path
from tickrelay.config.models import AppConfig
from tickrelay.core.errors import TelemetryError
from tickrelay.delivery.dispatcher import DeliveryDispatcher
from tickrelay.delivery.webhook import WebhookClient
from tickrelay.feed.transport import websocket_transport_factory
from tickrelay.pipeline.relay import TickRelay
from tickrelay.pipeline.scheduler import LoopScheduler
from tickrelay.telemetry import configure_logging
from tickrelay.telemetry.storage import TelemetryStorage, default_storage


async def run_relay(config: AppConfig, *, storage: TelemetryStorage, logger: logging.Logger) -> None:
    """Run one relay until SIGINT/SIGTERM, then release every resource."""

    loop = asyncio.get_running_loop()
    relay_cfg = config.relay
    client = WebhookClient(
        timeout=relay_cfg.delivery.timeout_sec,
        shared_secret=config.secrets.shared_secret,
        secret_header=relay_cfg.delivery.secret_header,
    )
    dispatcher = DeliveryDispatcher(
        relay_cfg.delivery.channels,
        client,
        max_inflight=relay_cfg.delivery.max_inflight,
        telemetry=storage,
        logger=logger.getChild("delivery"),
    )
    relay = TickRelay(
        relay_cfg,
        scheduler=LoopScheduler(loop),
        dispatcher=dispatcher,
        transport_factory=websocket_transport_factory(loop),
        logger=logger.getChild("relay"),
    )
    for channel in relay_cfg.delivery.channels:
        if channel.url is None:
            logger.warning("Channel has no endpoint configured; it stays inert", extra={"channel": channel.name})

    stop_event = asyncio.Event()

    def _request_stop(signum: int) -> None:
        logger.info("Received signal", extra={"signal": signum})
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _request_stop, signum)

    try:
        await relay.run(stop_event)
    finally:
        await client.aclose()
        try:
            storage.write_pipeline_stats(relay.stats())
        except TelemetryError as exc:  # pragma: no cover - telemetry path
            logger.warning("Failed to write pipeline stats: %s", exc)
        logger.info("Shutdown complete")


def main() -> None:
    project_root = Path(__file__).resolve().parents[1]
    config_dir = project_root / "config"
    config = load_app_config(
        relay_path=config_dir / "tickrelay.yml",
        secrets_path=resolve_secrets_path(config_dir),
    )

    telemetry_root = (project_root / config.relay.telemetry.reports_dir).resolve()
    storage = default_storage(telemetry_root)
    logger = configure_logging(log_dir=telemetry_root / "logs", level=config.relay.telemetry.log_level)
    logger.info(
        "Bootstrapping relay",
        extra={
            "symbols": config.relay.feed.symbols,
            "streams": config.relay.feed.streams,
            "channels": [channel.name for channel in config.relay.delivery.channels],
        },
    )
    asyncio.run(run_relay(config, storage=storage, logger=logger))


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - top-level safety
        print(f"Fatal error: {exc}", file=sys.stderr)
        raise
