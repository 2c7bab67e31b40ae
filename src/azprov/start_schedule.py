"""Scheduled VM start.

Start schedules are stored on the VM itself as a JSON tag, so no local
database or background daemon is needed. ``run_due`` is the entry point for
an external scheduler (cron, Windows Task Scheduler): it starts every tagged
VM whose daily trigger time has passed and that has not been started for
that trigger yet.

All times are UTC.
"""

import json
import logging
import re
from dataclasses import dataclass, replace
from datetime import UTC, datetime, time

from azprov.azure_provider import AzureProvider
from azprov.exceptions import ProvisionError, ScheduleError
from azprov.models import validate_service_name, validate_vm_name

logger = logging.getLogger(__name__)

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_days(value: str | None) -> tuple[str, ...]:
    """Parse a comma separated weekday list ("mon,tue" or "weekdays", "daily").

    Raises:
        ScheduleError: If a day is unknown
    """
    if not value or value.strip().lower() in ("daily", "all"):
        return WEEKDAYS
    if value.strip().lower() == "weekdays":
        return WEEKDAYS[:5]
    days = []
    for part in value.split(","):
        day = part.strip().lower()[:3]
        if day not in WEEKDAYS:
            raise ScheduleError(f"Unknown weekday: {part.strip()!r}")
        if day not in days:
            days.append(day)
    return tuple(sorted(days, key=WEEKDAYS.index))


def parse_time_of_day(value: str) -> time:
    """Parse "HH:MM".

    Raises:
        ScheduleError: If the value is not a valid 24h time
    """
    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ScheduleError(f"Invalid time {value!r}; expected HH:MM (24h, UTC)")
    return time(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True)
class StartSchedule:
    """Start schedule stored in a VM tag."""

    enabled: bool
    time_of_day: str
    days: tuple[str, ...] = WEEKDAYS
    last_start_time: datetime | None = None

    def to_tag_value(self) -> str:
        """Serialize to tag value (JSON string)."""
        return json.dumps(
            {
                "enabled": self.enabled,
                "time_of_day": self.time_of_day,
                "days": list(self.days),
                "last_start_time": (
                    self.last_start_time.isoformat() if self.last_start_time else None
                ),
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_tag_value(cls, tag_value: str) -> "StartSchedule":
        """Deserialize from tag value (JSON string).

        Raises:
            ScheduleError: If the tag cannot be parsed
        """
        try:
            data = json.loads(tag_value)
            last_start = None
            if data.get("last_start_time"):
                last_start = datetime.fromisoformat(data["last_start_time"])
                if last_start.tzinfo is None:
                    last_start = last_start.replace(tzinfo=UTC)
            time_of_day = data["time_of_day"]
            parse_time_of_day(time_of_day)
            return cls(
                enabled=data.get("enabled", True),
                time_of_day=time_of_day,
                days=parse_days(",".join(data.get("days") or WEEKDAYS)),
                last_start_time=last_start,
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ScheduleError(f"Failed to parse start schedule from tag: {e}") from e

    def trigger_for(self, now: datetime) -> datetime:
        """Today's trigger time (UTC)."""
        return datetime.combine(now.date(), parse_time_of_day(self.time_of_day), tzinfo=UTC)

    def is_due(self, now: datetime) -> bool:
        """Check whether the VM should be started at ``now``."""
        if not self.enabled:
            return False
        if WEEKDAYS[now.weekday()] not in self.days:
            return False
        trigger = self.trigger_for(now)
        if now < trigger:
            return False
        return self.last_start_time is None or self.last_start_time < trigger


class StartScheduleManager:
    """Manage start schedules stored in VM tags."""

    SCHEDULE_TAG_KEY = "azprov:start-schedule"

    def __init__(self, provider: AzureProvider):
        self.provider = provider

    def enable(
        self, service_name: str, vm_name: str, at: str, days: str | None = None
    ) -> StartSchedule:
        """Enable a daily start at ``at`` (HH:MM UTC) on ``days``."""
        validate_service_name(service_name)
        validate_vm_name(vm_name)
        parse_time_of_day(at)

        schedule = StartSchedule(enabled=True, time_of_day=at.strip(), days=parse_days(days))
        self.provider.set_vm_tag(
            service_name, vm_name, self.SCHEDULE_TAG_KEY, schedule.to_tag_value()
        )
        logger.info(f"Enabled start schedule for {vm_name}: {at} UTC on {','.join(schedule.days)}")
        return schedule

    def disable(self, service_name: str, vm_name: str) -> None:
        validate_service_name(service_name)
        validate_vm_name(vm_name)
        self.provider.remove_vm_tag(service_name, vm_name, self.SCHEDULE_TAG_KEY)
        logger.info(f"Disabled start schedule for {vm_name}")

    def get(self, service_name: str, vm_name: str) -> StartSchedule | None:
        tags = self.provider.get_vm_tags(service_name, vm_name)
        tag_value = tags.get(self.SCHEDULE_TAG_KEY)
        if not tag_value:
            return None
        return StartSchedule.from_tag_value(tag_value)

    def run_due(
        self, service_name: str, vm_name: str | None = None, now: datetime | None = None
    ) -> dict[str, int]:
        """Start every scheduled VM that is due.

        A failure on one VM is logged and counted; the others are still
        processed.

        Returns:
            Counters: checked, started, skipped, failed
        """
        now = now or datetime.now(UTC)
        results = {"checked": 0, "started": 0, "skipped": 0, "failed": 0}
        vms = (
            [vm_name]
            if vm_name
            else self.provider.list_vms_with_tag(service_name, self.SCHEDULE_TAG_KEY)
        )

        for vm in vms:
            results["checked"] += 1
            try:
                schedule = self.get(service_name, vm)
                if schedule is None or not schedule.is_due(now):
                    results["skipped"] += 1
                    continue

                if self.provider.get_power_state(service_name, vm) == "PowerState/running":
                    logger.info(f"VM {vm} is already running")
                else:
                    self.provider.start_vm(service_name, vm)
                    results["started"] += 1

                updated = replace(schedule, last_start_time=now)
                self.provider.set_vm_tag(
                    service_name, vm, self.SCHEDULE_TAG_KEY, updated.to_tag_value()
                )
            except ProvisionError as e:
                logger.error(f"Failed to run start schedule for {vm}: {e}")
                results["failed"] += 1

        return results


__all__ = [
    "StartSchedule",
    "StartScheduleManager",
    "parse_days",
    "parse_time_of_day",
]
