from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from slawatch import config
from slawatch.services.stage_clock import coerce_timestamp, utcnow
from slawatch.services.storage import KeyValueStore, StorageUnavailableError


logger = logging.getLogger("slawatch.throttle")


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds") + "Z"


@dataclass(frozen=True)
class ThrottleRecord:
    last_shown: datetime
    show_count: int
    snoozed_until: datetime | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"lastShown": _iso(self.last_shown), "showCount": self.show_count}
        if self.snoozed_until is not None:
            payload["snoozedUntil"] = _iso(self.snoozed_until)
        return payload

    @classmethod
    def from_json(cls, raw: Any) -> ThrottleRecord | None:
        if not isinstance(raw, dict):
            return None
        last_shown = coerce_timestamp(raw.get("lastShown"))
        if last_shown is None:
            return None
        show_count = raw.get("showCount", 0)
        if not isinstance(show_count, int) or isinstance(show_count, bool):
            show_count = 0
        return cls(
            last_shown=last_shown,
            show_count=show_count,
            snoozed_until=coerce_timestamp(raw.get("snoozedUntil")),
        )


def is_critical(insight: Any, risk_amount: float | None = None, threshold: float | None = config.CRITICAL_RISK_AMOUNT) -> bool:
    if getattr(insight, "urgency", None) == "immediate":
        return True
    return bool(threshold and risk_amount and risk_amount > threshold)


class AlertThrottleStore:
    """Cooldown and snooze bookkeeping per alert type.

    The whole map is written back to the injected key-value backend after
    every mutation. When the backend fails the store keeps working from
    memory and logs the failure.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        storage_key: str = config.THROTTLE_STORAGE_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.backend = backend
        self.storage_key = storage_key
        self.clock = clock
        self._state: dict[str, ThrottleRecord] = self._load()

    def _load(self) -> dict[str, ThrottleRecord]:
        try:
            raw = self.backend.get(self.storage_key)
        except StorageUnavailableError as exc:
            logger.warning("Throttle state unavailable, starting empty: %s", exc)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Throttle state is not valid JSON, starting empty: %s", exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Throttle state has unexpected shape %s, starting empty", type(data).__name__)
            return {}

        state: dict[str, ThrottleRecord] = {}
        for key, value in data.items():
            record = ThrottleRecord.from_json(value)
            if record is None:
                logger.warning("Dropping unreadable throttle entry key=%s", key)
                continue
            state[str(key)] = record
        return state

    def _save(self, state: dict[str, ThrottleRecord]) -> None:
        self._state = state
        payload = json.dumps({key: record.to_json() for key, record in state.items()})
        try:
            self.backend.set(self.storage_key, payload)
        except StorageUnavailableError as exc:
            logger.warning("Failed to save throttle state: %s", exc)

    def _now(self) -> datetime:
        return coerce_timestamp(self.clock()) or utcnow()

    def record(self, key: str) -> ThrottleRecord | None:
        return self._state.get(key)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {key: record.to_json() for key, record in self._state.items()}

    def is_throttled(self, key: str, high_sensitivity: bool = False) -> bool:
        record = self._state.get(key)
        if record is None:
            return False
        now = self._now()
        if record.snoozed_until is not None and now < record.snoozed_until:
            return True
        cooldown = config.HIGH_SENSITIVITY_ALERT_COOLDOWN if high_sensitivity else config.DEFAULT_ALERT_COOLDOWN
        return now - record.last_shown < cooldown

    def mark_as_shown(self, key: str) -> ThrottleRecord:
        previous = self._state.get(key)
        updated = ThrottleRecord(
            last_shown=self._now(),
            show_count=(previous.show_count if previous else 0) + 1,
            snoozed_until=previous.snoozed_until if previous else None,
        )
        self._save({**self._state, key: updated})
        return updated

    def snooze_insight(self, key: str, hours: float = config.DEFAULT_SNOOZE_HOURS) -> ThrottleRecord:
        now = self._now()
        previous = self._state.get(key)
        updated = ThrottleRecord(
            last_shown=previous.last_shown if previous else now,
            show_count=previous.show_count if previous else 0,
            snoozed_until=now + timedelta(hours=hours),
        )
        self._save({**self._state, key: updated})
        return updated

    def unsnooze_insight(self, key: str) -> ThrottleRecord | None:
        previous = self._state.get(key)
        if previous is None:
            return None
        updated = ThrottleRecord(last_shown=previous.last_shown, show_count=previous.show_count)
        self._save({**self._state, key: updated})
        return updated

    def snoozed_count(self) -> int:
        now = self._now()
        return sum(1 for record in self._state.values() if record.snoozed_until is not None and record.snoozed_until > now)

    def clear_all_snoozes(self) -> None:
        self._save(
            {
                key: ThrottleRecord(last_shown=record.last_shown, show_count=record.show_count)
                for key, record in self._state.items()
            }
        )

    def clear_all_throttles(self) -> None:
        self._save({})
