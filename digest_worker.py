#!/usr/bin/env python3
"""Weekly digest worker.

Runs one digest cycle (or scheduled weekly) and delivers it to the default
destination, or broadcasts when none is known.
"""

from __future__ import annotations

import logging
import os
import sys
import time

import schedule

from carebrief.briefs.weekly_digest import WeeklyDigest, deliver_digest, resolve_targets
from carebrief.config import Settings
from carebrief.delivery.line_client import LineClient
from carebrief.errors import ConfigurationError
from carebrief.storage.destinations import JsonDestinationRegistry

logger = logging.getLogger("digest_worker")

WEEKDAYS = {
    "mon": "monday", "tue": "tuesday", "wed": "wednesday", "thu": "thursday",
    "fri": "friday", "sat": "saturday", "sun": "sunday",
}


def run_once(settings: Settings) -> None:
    registry = JsonDestinationRegistry(settings.destinations_path, env_default=settings.default_to)
    mode, targets = resolve_targets(os.environ.get("DIGEST_TO") or None, registry)
    if mode == "push:all-groups" and not targets:
        logger.warning("[digest] DIGEST_TO=all-groups but no groups are saved yet, skipping run")
        return

    digest = WeeklyDigest.from_settings(settings)
    client = LineClient(settings.line_channel_access_token, timeout=settings.request_timeout)
    run = digest.build()
    report = deliver_digest(run.messages, client, mode, targets)
    print(
        f"[digest] mode={report.mode} targets={len(report.targets)} failed={len(report.failed)} "
        f"domestic={len(run.domestic)} overseas={len(run.overseas)}"
    )


def run_scheduled(settings: Settings) -> None:
    day, at = settings.digest_schedule.split()
    job = getattr(schedule.every(), WEEKDAYS.get(day.lower()[:3], "monday"))
    job.at(at).do(run_once, settings)
    logger.info(f"Scheduled weekly digest: {day} {at}")
    while True:
        schedule.run_pending()
        time.sleep(30)


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    mode = (os.environ.get("DIGEST_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        run_scheduled(settings)
    else:
        run_once(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
