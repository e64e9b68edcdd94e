"""
Scheduled reports -- run a report on a daily / weekly / monthly cadence,
export it and hand the file to a delivery transport.

Timing is pure: ``should_run`` and ``next_run_time`` take the current time
as an argument, and wall-clock times are interpreted in the schedule's own
timezone. Transports (email, Slack, webhooks) live outside the engine and
plug in through the ``Deliverer`` protocol.

``build_scheduler`` wires ``process_pending`` into an APScheduler
``BackgroundScheduler`` that polls a ``ScheduleBook`` on a fixed interval.
"""
from __future__ import annotations

import calendar
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Iterable, Literal, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.background import BackgroundScheduler
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from report_engine.core.errors import ReportEngineError
from report_engine.core.logging import get_logger
from report_engine.reports.export import MEDIA_TYPES, ExportOptions
from report_engine.reports.service import ReportEngine
from report_engine.reports.spec import DateRange, ReportSpec

logger = get_logger(__name__)

Frequency = Literal["daily", "weekly", "monthly", "custom"]
DeliveryMethod = Literal["email", "slack", "webhook"]

PREVIEW_ROWS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ── Models ───────────────────────────────────────────────

class DeliveryConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: list[str] = Field(default_factory=list)
    slack_webhook: str | None = Field(None, alias="slackWebhook")
    webhook_url: str | None = Field(None, alias="webhookUrl")
    format: Literal["pdf", "excel", "csv", "json"] = "csv"


class ScheduleConfig(BaseModel):
    """When a report runs, for whom, and where its export goes.

    ``report_id`` names a report template unless the caller supplies the
    spec itself. ``day_of_week`` counts from 0 = Sunday.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    tenant_id: str = Field(alias="tenantId")
    report_id: str = Field(alias="reportId")
    name: str | None = None
    frequency: Frequency = "daily"
    schedule_time: str = Field("08:00", alias="scheduleTime")
    day_of_week: int | None = Field(None, alias="dayOfWeek", ge=0, le=6)
    day_of_month: int | None = Field(None, alias="dayOfMonth", ge=1, le=31)
    timezone: str = "UTC"
    delivery_method: DeliveryMethod = Field("email", alias="deliveryMethod")
    delivery_config: DeliveryConfig = Field(default_factory=DeliveryConfig, alias="deliveryConfig")
    lookback_days: int = Field(30, alias="lookbackDays", ge=1)
    is_active: bool = Field(True, alias="isActive")
    last_run_at: datetime | None = Field(None, alias="lastRunAt")
    next_run_at: datetime | None = Field(None, alias="nextRunAt")

    @field_validator("schedule_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        try:
            hours, minutes = (int(part) for part in value.split(":"))
        except ValueError as exc:
            raise ValueError(f"schedule_time must be HH:MM, got {value!r}") from exc
        if not (0 <= hours <= 23 and 0 <= minutes <= 59):
            raise ValueError(f"schedule_time out of range: {value!r}")
        return f"{hours:02d}:{minutes:02d}"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            _zone(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {value!r}") from exc
        return value

    @model_validator(mode="after")
    def _check_delivery_target(self) -> "ScheduleConfig":
        cfg = self.delivery_config
        if self.delivery_method == "email" and not cfg.email:
            raise ValueError("email delivery needs at least one address")
        if self.delivery_method == "slack" and not cfg.slack_webhook:
            raise ValueError("slack delivery needs slackWebhook")
        if self.delivery_method == "webhook" and not cfg.webhook_url:
            raise ValueError("webhook delivery needs webhookUrl")
        return self

    @property
    def clock_time(self) -> tuple[int, int]:
        hours, minutes = self.schedule_time.split(":")
        return int(hours), int(minutes)


@dataclass(frozen=True)
class ScheduledReport:
    """What a Deliverer receives: the exported file plus a small preview."""

    schedule_id: str
    report_id: str
    tenant_id: str
    format: str
    filename: str
    media_type: str
    body: bytes
    row_count: int
    execution_time_ms: int
    generated_at: datetime
    preview: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ScheduleRun:
    schedule: ScheduleConfig
    success: bool
    row_count: int = 0
    error: str | None = None


class Deliverer(Protocol):
    def deliver(self, schedule: ScheduleConfig, report: ScheduledReport) -> None:
        """Send *report*; raise DeliveryError on failure."""
        ...


# ── Timing ───────────────────────────────────────────────

def should_run(schedule: ScheduleConfig, now: datetime | None = None) -> bool:
    """Active schedules run when they never ran or their next run time has passed."""
    if not schedule.is_active:
        return False
    if schedule.next_run_at is None:
        return True
    now = _aware(now or _utcnow())
    return now >= _aware(schedule.next_run_at)


def _month_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def next_run_time(schedule: ScheduleConfig, now: datetime | None = None) -> datetime:
    """First slot strictly after *now*, returned in UTC.

    Weekly schedules default to Monday and monthly ones to the 1st. A day of
    month past the end of a short month falls on that month's last day.
    ``custom`` is treated as daily.
    """
    zone = _zone(schedule.timezone)
    local_now = _aware(now or _utcnow()).astimezone(zone)
    hours, minutes = schedule.clock_time
    slot = local_now.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    if schedule.frequency == "weekly":
        target = 1 if schedule.day_of_week is None else schedule.day_of_week
        current = (slot.weekday() + 1) % 7
        slot += timedelta(days=(target - current) % 7)
        if slot <= local_now:
            slot += timedelta(days=7)
    elif schedule.frequency == "monthly":
        wanted = schedule.day_of_month or 1
        slot = slot.replace(day=_month_day(slot.year, slot.month, wanted))
        if slot <= local_now:
            year, month = (slot.year + 1, 1) if slot.month == 12 else (slot.year, slot.month + 1)
            slot = slot.replace(year=year, month=month, day=_month_day(year, month, wanted))
    else:
        if slot <= local_now:
            slot += timedelta(days=1)

    return slot.astimezone(timezone.utc)


def upcoming(
    schedules: Iterable[ScheduleConfig],
    tenant_id: str | None = None,
    limit: int = 10,
) -> list[ScheduleConfig]:
    """Active schedules ordered by next run time; never-scheduled ones last."""
    active = [
        s for s in schedules
        if s.is_active and (tenant_id is None or s.tenant_id == tenant_id)
    ]
    far_future = datetime.max.replace(tzinfo=timezone.utc)
    active.sort(key=lambda s: _aware(s.next_run_at) if s.next_run_at else far_future)
    return active[:limit]


# ── Registry ─────────────────────────────────────────────

class ScheduleBook:
    """Thread-safe in-process registry of schedules."""

    def __init__(self, schedules: Iterable[ScheduleConfig] = ()):
        self._lock = threading.Lock()
        self._schedules: dict[str, ScheduleConfig] = {s.id: s for s in schedules}

    def add(self, schedule: ScheduleConfig) -> None:
        with self._lock:
            self._schedules[schedule.id] = schedule

    def remove(self, schedule_id: str) -> bool:
        with self._lock:
            return self._schedules.pop(schedule_id, None) is not None

    def get(self, schedule_id: str) -> ScheduleConfig | None:
        with self._lock:
            return self._schedules.get(schedule_id)

    def all(self) -> list[ScheduleConfig]:
        with self._lock:
            return list(self._schedules.values())

    def pending(self, now: datetime | None = None) -> list[ScheduleConfig]:
        return [s for s in self.all() if should_run(s, now)]

    def upcoming(self, tenant_id: str | None = None, limit: int = 10) -> list[ScheduleConfig]:
        return upcoming(self.all(), tenant_id, limit)

    def record(self, run: ScheduleRun) -> None:
        # a schedule removed while it ran stays removed
        with self._lock:
            if run.schedule.id in self._schedules:
                self._schedules[run.schedule.id] = run.schedule

    def __len__(self) -> int:
        with self._lock:
            return len(self._schedules)


# ── Execution ────────────────────────────────────────────

def scheduled_spec(spec: ReportSpec, schedule: ScheduleConfig, now: datetime | None = None) -> ReportSpec:
    """*spec* with a trailing ``lookback_days`` window unless it carries its own date range."""
    if spec.date_range is not None:
        return spec
    today: date = _aware(now or _utcnow()).astimezone(_zone(schedule.timezone)).date()
    window = DateRange(
        start=(today - timedelta(days=schedule.lookback_days)).isoformat(),
        end=today.isoformat(),
    )
    return spec.model_copy(update={"date_range": window})


def execute_scheduled(
    engine: ReportEngine,
    schedule: ScheduleConfig,
    spec: ReportSpec,
    deliverer: Deliverer,
    now: datetime | None = None,
) -> ScheduleRun:
    """Execute, export and deliver one scheduled report.

    Report engine failures (including DeliveryError) are logged and returned
    as an unsuccessful run; the schedule's run times only advance on success.
    """
    now = _aware(now or _utcnow())
    fmt = schedule.delivery_config.format
    title = schedule.name or schedule.report_id

    try:
        engine.ensure_exportable(fmt)
        result = engine.execute(scheduled_spec(spec, schedule, now), schedule.tenant_id, use_cache=False)
        options = ExportOptions(title=title)
        body = engine.export_result(result, fmt, options)
        report = ScheduledReport(
            schedule_id=schedule.id,
            report_id=schedule.report_id,
            tenant_id=schedule.tenant_id,
            format=fmt,
            filename=options.resolved_filename(fmt),
            media_type=MEDIA_TYPES[fmt],
            body=body,
            row_count=result.metadata.row_count,
            execution_time_ms=result.metadata.execution_time_ms,
            generated_at=result.metadata.generated_at,
            preview=result.rows[:PREVIEW_ROWS],
        )
        deliverer.deliver(schedule, report)
    except ReportEngineError as exc:
        logger.error("Scheduled report %s (%s) failed: %s", schedule.id, schedule.report_id, exc)
        return ScheduleRun(schedule=schedule, success=False, error=str(exc))

    updated = schedule.model_copy(update={
        "last_run_at": now,
        "next_run_at": next_run_time(schedule, now),
    })
    logger.info("Scheduled report %s delivered via %s: %d rows, next run %s",
                schedule.id, schedule.delivery_method, report.row_count, updated.next_run_at.isoformat())
    return ScheduleRun(schedule=updated, success=True, row_count=report.row_count)


def process_pending(
    engine: ReportEngine,
    book: ScheduleBook,
    deliverer: Deliverer,
    spec_for: Callable[[ScheduleConfig], ReportSpec] | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> list[ScheduleRun]:
    """Run every due schedule in *book* and record the outcomes.

    Specs come from ``spec_for``; by default ``report_id`` is looked up in
    the engine's template catalog.
    """
    now = _aware(clock())
    resolve = spec_for or (lambda s: engine.get_template(s.report_id).to_spec())
    due = book.pending(now)
    if not due:
        logger.debug("No pending schedules")
        return []

    logger.info("Processing %d pending schedule(s)", len(due))
    runs: list[ScheduleRun] = []
    for schedule in due:
        try:
            spec = resolve(schedule)
        except ReportEngineError as exc:
            logger.error("Schedule %s has no runnable report: %s", schedule.id, exc)
            run = ScheduleRun(schedule=schedule, success=False, error=str(exc))
        else:
            run = execute_scheduled(engine, schedule, spec, deliverer, now)
        book.record(run)
        runs.append(run)

    failed = sum(1 for r in runs if not r.success)
    logger.info("Schedules processed: %d ok, %d failed", len(runs) - failed, failed)
    return runs


def build_scheduler(
    engine: ReportEngine,
    book: ScheduleBook,
    deliverer: Deliverer,
    spec_for: Callable[[ScheduleConfig], ReportSpec] | None = None,
    interval_seconds: int = 60,
) -> BackgroundScheduler:
    """Return a configured but not yet started scheduler polling *book*.

    The caller owns ``.start()`` and ``.shutdown(wait=True)``.
    """
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        process_pending,
        trigger="interval",
        seconds=interval_seconds,
        args=[engine, book, deliverer, spec_for],
        id="report_schedules",
        name="Scheduled report delivery",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler

