from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import json
import logging
import signal
from pathlib import Path
from typing import Any, Optional

from analysis.motion.loop import DetectionLoop
from analysis.motion.model import ConfigError, DetectionConfig
from analysis.motion.stats import format_duration, summarize
from analysis.motion.store import JsonlEventStore, MemoryEventStore
from capture.snapshot import SnapshotConfig, SnapshotFrameSource
from common.time import now_ms
from record.trigger import RecordingTrigger, WebhookNotifier
from record.webhook import WebhookClient, WebhookConfig

_LOG = logging.getLogger(__name__)


def _parse_schedule(value: str) -> tuple[int, int]:
    try:
        start_s, end_s = value.split("-", 1)
        return int(start_s), int(end_s)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected START-END hours, got {value!r}") from exc


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Run frame-differencing motion detection against a camera snapshot URL.",
    )
    ap.add_argument(
        "--snapshot-url",
        type=str,
        required=True,
        help="Still-image URL polled for frames (e.g. http://cam.local/snapshot.jpg).",
    )
    ap.add_argument(
        "--events",
        type=str,
        default=None,
        help="JSONL file for motion events (newest first). In-memory only if omitted.",
    )
    ap.add_argument(
        "--settings",
        type=str,
        default=None,
        help="JSON file with stored camera settings (motion_sensitivity, cooldown_period, ...).",
    )

    # Detection tuning; unset flags keep the settings file / default values.
    ap.add_argument("--sensitivity", type=float, default=None, help="Pixel sensitivity 0..100.")
    ap.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum percentage of changed pixels that counts as motion.",
    )
    ap.add_argument(
        "--cooldown-s",
        type=int,
        default=None,
        help="Minimum seconds between two motion alerts.",
    )
    ap.add_argument(
        "--schedule",
        type=_parse_schedule,
        default=None,
        metavar="START-END",
        help="Only alert between these local hours, e.g. 22-6 (wraps past midnight).",
    )
    ap.add_argument(
        "--no-noise-reduction",
        action="store_true",
        help="Use the low noise floor (5) instead of 15.",
    )

    # Home Assistant
    ap.add_argument("--webhook-url", type=str, default=None, help="Home Assistant base URL.")
    ap.add_argument("--webhook-id", type=str, default=None, help="Home Assistant webhook id.")
    ap.add_argument(
        "--record",
        action="store_true",
        help="Also send start_recording webhooks on motion (at most every 10 s).",
    )
    ap.add_argument("--camera-name", type=str, default="Camera", help="Camera name in events.")

    ap.add_argument(
        "--poll-interval-s",
        type=float,
        default=1.0,
        help="Snapshot polling interval in seconds.",
    )
    ap.add_argument(
        "--max-seconds",
        type=int,
        default=0,
        help="If > 0, stop after this many seconds; otherwise run until Ctrl+C.",
    )
    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return ap


def build_config(args: argparse.Namespace) -> DetectionConfig:
    """Settings file first, then command-line overrides; raises ConfigError."""
    if args.settings:
        settings: dict[str, Any] = json.loads(Path(args.settings).read_text(encoding="utf-8"))
        cfg = DetectionConfig.from_settings(settings)
    else:
        cfg = DetectionConfig()

    overrides: dict[str, Any] = {}
    if args.sensitivity is not None:
        overrides["sensitivity"] = args.sensitivity
    if args.threshold is not None:
        overrides["threshold"] = args.threshold
    if args.cooldown_s is not None:
        overrides["cooldown_period_s"] = args.cooldown_s
    if args.schedule is not None:
        overrides["schedule_enabled"] = True
        overrides["start_hour"], overrides["end_hour"] = args.schedule
    if args.no_noise_reduction:
        overrides["noise_reduction"] = False
    return dataclasses.replace(cfg, **overrides).validate()


async def _run(args: argparse.Namespace, cfg: DetectionConfig) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _request_stop() -> None:
        _LOG.info("Shutdown requested")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(_request_stop))

    store = JsonlEventStore(args.events) if args.events else MemoryEventStore()
    if args.events:
        _LOG.info("Writing motion events to %s", args.events)

    notifier: Optional[WebhookNotifier] = None
    trigger: Optional[RecordingTrigger] = None
    if args.webhook_url and args.webhook_id:
        client = WebhookClient(WebhookConfig(base_url=args.webhook_url, webhook_id=args.webhook_id))
        notifier = WebhookNotifier(client, camera_name=args.camera_name)
        if args.record:
            trigger = RecordingTrigger(notifier.start_recording)

    source = SnapshotFrameSource(
        SnapshotConfig(url=args.snapshot_url, interval_s=args.poll_interval_s)
    )
    detector = DetectionLoop(
        loop,
        store=store,
        on_error=lambda exc: _LOG.error("Event store failure: %s", exc),
        recording_trigger=trigger,
        notifier=notifier,
        camera_id=args.camera_name,
    )

    source.start()
    detector.start(source, cfg)
    try:
        timeout = args.max_seconds if args.max_seconds > 0 else None
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            _LOG.info("Reached max-seconds=%d, exiting.", args.max_seconds)
    finally:
        detector.stop()
        with contextlib.suppress(Exception):
            source.close()

    stats = summarize(detector.recent_events(), now_ms())
    _LOG.info(
        "Motion summary: events=%d avg_level=%.2f%% total=%s peak_hour=%02d:00 trend=%s (%.0f%%)",
        stats.total_events,
        stats.average_motion_level,
        format_duration(stats.total_duration_ms),
        stats.peak_hour,
        stats.trend,
        stats.trend_percentage,
    )


def main(argv: Optional[list[str]] = None) -> None:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        cfg = build_config(args)
    except (ConfigError, OSError, ValueError) as exc:
        ap.error(str(exc))

    asyncio.run(_run(args, cfg))


if __name__ == "__main__":  # pragma: no cover
    main()
