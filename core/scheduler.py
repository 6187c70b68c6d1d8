"""Background scheduler that periodically starts a category sweep."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_INTERVAL_SECONDS = 3600.0


@dataclass
class SchedulerConfig:
    enabled: bool = False
    timezone: str = "UTC"
    interval_minutes: Optional[float] = None
    cron: Optional[str] = None
    operation: str = "sweep"

    @classmethod
    def from_mapping(cls, raw_cfg: Optional[Mapping[str, Any]]) -> "SchedulerConfig":
        if not raw_cfg:
            return cls()
        interval = raw_cfg.get("interval_minutes")
        try:
            interval_val = float(interval) if interval is not None else None
        except (TypeError, ValueError):
            interval_val = None
        if interval_val is not None and interval_val <= 0:
            interval_val = None
        return cls(
            enabled=bool(raw_cfg.get("enabled", False)),
            timezone=str(raw_cfg.get("timezone") or "UTC"),
            interval_minutes=interval_val,
            cron=str(raw_cfg.get("cron") or "").strip() or None,
            operation=str(raw_cfg.get("operation") or "sweep"),
        )


class SweepScheduler:
    """Call ``controller.start(operation)`` on a fixed interval or a cron schedule."""

    def __init__(self, controller, config: SchedulerConfig, logger=None) -> None:
        self.controller = controller
        self.config = config
        self.logger = logger
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._tzinfo = self._resolve_timezone(config.timezone)
        self._cron = SimpleCron(config.cron) if config.cron else None

    def start(self) -> None:
        if not self.config.enabled:
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_forever, daemon=True)
        self._thread.start()
        if self.logger:
            mode = (
                f"every {self.config.interval_minutes} minute(s)"
                if self.config.interval_minutes
                else f"cron '{self.config.cron}'" if self._cron else "hourly"
            )
            self.logger.info("Scheduler enabled (%s).", mode)

    def stop(self) -> None:
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=1)
        self._thread = None

    def _run_forever(self) -> None:
        while not self._stop_event.is_set():
            wait_seconds = max(self._next_interval_seconds(), 0.01)
            if self._stop_event.wait(wait_seconds):
                break
            self._trigger()

    def _trigger(self) -> None:
        started = self.controller.start(self.config.operation)
        if self.logger:
            if started:
                self.logger.info("Scheduler triggered %s.", self.config.operation)
            else:
                self.logger.info("Scheduler skip: %s already running.", self.config.operation)

    def _next_interval_seconds(self) -> float:
        if self.config.interval_minutes:
            return float(self.config.interval_minutes) * 60.0
        if self._cron:
            now = datetime.now(self._tzinfo)
            return (self._cron.next_after(now) - now).total_seconds()
        return DEFAULT_INTERVAL_SECONDS

    @staticmethod
    def _resolve_timezone(name: str):
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return timezone.utc


class SimpleCron:
    """Minimal 5-field cron expression (minute hour day-of-month month day-of-week)."""

    # 7 is accepted as an alias for Sunday in the weekday field
    FIELDS = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 7))

    def __init__(self, expr: str) -> None:
        parts = expr.split()
        if len(parts) != 5:
            raise ValueError("Cron expression must have 5 fields.")
        self.minutes, self.hours, self.days, self.months, self.weekdays = (
            self._parse_field(part, low, high) for part, (low, high) in zip(parts, self.FIELDS)
        )
        if self.weekdays is not None and 7 in self.weekdays:
            self.weekdays = (self.weekdays - {7}) | {0}

    def next_after(self, now: datetime) -> datetime:
        candidate = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        for _ in range(366 * 24 * 60):
            if self._match(candidate):
                return candidate
            candidate += timedelta(minutes=1)
        raise ValueError("Cron expression did not match within a year.")

    def _match(self, dt: datetime) -> bool:
        # cron counts Sunday as 0, datetime.weekday() counts Monday as 0
        cron_weekday = (dt.weekday() + 1) % 7
        checks = (
            (self.minutes, dt.minute),
            (self.hours, dt.hour),
            (self.days, dt.day),
            (self.months, dt.month),
            (self.weekdays, cron_weekday),
        )
        return all(allowed is None or value in allowed for allowed, value in checks)

    @staticmethod
    def _parse_field(field: str, low: int, high: int) -> Optional[set]:
        if field in ("", "*"):
            return None
        values: set = set()
        for part in field.split(","):
            base, _, step_text = part.partition("/")
            step = max(1, int(step_text)) if step_text else 1
            if base == "*":
                start, end = low, high
            elif "-" in base:
                start_text, end_text = base.split("-", 1)
                start, end = int(start_text), int(end_text)
            else:
                start = end = int(base)
            values.update(range(max(low, start), min(high, end) + 1, step))
        return values or None
