"""
Headless entry point: submit already-uploaded invoices and follow their progress.

Run: python main.py https://blob.example/a.pdf=a.pdf https://blob.example/b.png=b.png
Requires: pip install -e .
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from jobtrack.application.container import Container
from jobtrack.application.ports.backend import BatchItem, ModelProvider, ProcessingOptions
from jobtrack.config import load_settings
from jobtrack.core.errors import AppError
from jobtrack.core.events import ConnectionChanged, JobNotification, JobUpdated
from jobtrack.core.observability.logging_config import setup_logging

logger = logging.getLogger("jobtrack.main")


def _parse_item(raw: str) -> BatchItem:
    source_ref, sep, name = raw.rpartition("=")
    if not sep:
        source_ref, name = raw, raw.rsplit("/", 1)[-1]
    return BatchItem(source_ref=source_ref, display_name=name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Submit invoices and follow extraction progress")
    parser.add_argument("items", nargs="+", help="SOURCE_URL[=DISPLAY_NAME]")
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--provider", choices=[p.value for p in ModelProvider], default="openai")
    parser.add_argument("--confidence", type=float, default=0.8)
    parser.add_argument("--review", action="store_true", help="force human review")
    parser.add_argument("--connect-timeout", type=float, default=15.0)
    return parser


async def run(args: argparse.Namespace) -> int:
    container = Container(load_settings(args.config))
    bus = container.event_bus
    bus.subscribe(ConnectionChanged, lambda e: logger.info("connected=%s", e.connected))
    bus.subscribe(
        JobUpdated,
        lambda e: logger.info(
            "%s [%s] %3d%% %s",
            e.record.display_name,
            e.record.status.value,
            e.record.progress,
            e.record.stage or "",
        ),
    )
    bus.subscribe(
        JobNotification,
        lambda e: logger.info("%s finished: %s %s", e.display_name, e.status.value, e.error or ""),
    )

    session = await container.start()
    try:
        if not await session.wait_connected(args.connect_timeout):
            logger.error("Could not connect to %s", container.settings.base_url)
            return 2
        options = ProcessingOptions(
            auto_save=not args.review,
            confidence_threshold=args.confidence,
            model_provider=ModelProvider(args.provider),
            human_in_loop=args.review,
        )
        result = await container.submit_batch_use_case.execute(
            [_parse_item(raw) for raw in args.items], options
        )
        tracker = container.track_batch(result.job_ids)
        while not tracker.all_complete:
            await asyncio.sleep(0.5)
        logger.info("Batch done: %.0f%% %s", tracker.progress, {k.value: v for k, v in tracker.counts.items()})
        tracker.close()
        return 0
    except AppError as e:
        logger.error("%s", e)
        return 1
    finally:
        await container.aclose()


def main() -> None:
    setup_logging()
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
