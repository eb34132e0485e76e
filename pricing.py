"""
pricing.py
Price table: course x session time x plan days -> price.
Loaded from / saved to a settings store that the caller passes in.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Protocol

import config
from errors import InvalidSelection
from models import COURSES, PLAN_DAYS, SESSION_TIMES

logger = logging.getLogger(__name__)

DEFAULT_PRICING: dict[str, dict[str, dict[int, int]]] = {
    "motorcycle": {
        "30min": {1: 300, 7: 1800, 15: 3500, 30: 6000},
        "1hr": {1: 500, 7: 3000, 15: 5500, 30: 10000},
    },
    "car": {
        "30min": {1: 500, 7: 3000, 15: 5500, 30: 10000},
        "1hr": {1: 800, 7: 5000, 15: 9000, 30: 16000},
    },
}


class SettingsStore(Protocol):
    def get_setting(self, key: str, default: str | None = None) -> str | None: ...

    def set_setting(self, key: str, value: str) -> None: ...


def coerce_price(value) -> int:
    """Whole, non-negative currency units. Anything unreadable counts as 0."""
    try:
        price = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, price)


def _plan_key(plan_days) -> int:
    try:
        days = int(plan_days)
    except (TypeError, ValueError):
        raise InvalidSelection(f"Unknown payment plan: {plan_days!r}") from None
    if days not in PLAN_DAYS:
        raise InvalidSelection(f"Unknown payment plan: {plan_days!r}")
    return days


def _check_keys(course: str, session_time: str, plan_days) -> int:
    if course not in COURSES:
        raise InvalidSelection(f"Unknown course: {course!r}")
    if session_time not in SESSION_TIMES:
        raise InvalidSelection(f"Unknown session time: {session_time!r}")
    return _plan_key(plan_days)


class PricingTable:
    """
    Fixed-shape price grid. Every edit is written to the store straight away;
    existing enrollments keep the amount they were created with.
    """

    def __init__(self, store: SettingsStore | None = None, prices: dict | None = None):
        self.store = store
        self._prices = copy.deepcopy(DEFAULT_PRICING)
        if prices:
            self._merge(prices)

    @classmethod
    def load(cls, store: SettingsStore) -> "PricingTable":
        raw = store.get_setting(config.PRICING_SETTING_KEY)
        if not raw:
            return cls(store)
        try:
            saved = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Saved pricing table is not valid JSON, using defaults")
            return cls(store)
        if not isinstance(saved, dict):
            logger.warning("Saved pricing table has the wrong shape, using defaults")
            return cls(store)
        return cls(store, saved)

    def _merge(self, prices: dict) -> None:
        # Only known cells are taken; anything missing keeps the default
        for course in COURSES:
            sessions = prices.get(course)
            if not isinstance(sessions, dict):
                continue
            for session_time in SESSION_TIMES:
                cells = sessions.get(session_time)
                if not isinstance(cells, dict):
                    continue
                for days in PLAN_DAYS:
                    value = cells.get(days, cells.get(str(days)))
                    if value is not None:
                        self._prices[course][session_time][days] = coerce_price(value)

    def get_price(self, course: str, session_time: str, plan_days) -> int:
        days = _check_keys(course, session_time, plan_days)
        return self._prices[course][session_time][days]

    def set_price(self, course: str, session_time: str, plan_days, amount) -> int:
        days = _check_keys(course, session_time, plan_days)
        price = coerce_price(amount)
        self._prices[course][session_time][days] = price
        self.save()
        return price

    def update(self, prices: dict) -> None:
        """Replace several cells at once (e.g. a whole settings form)."""
        self._merge(prices)
        self.save()

    def reset_to_default(self) -> None:
        self._prices = copy.deepcopy(DEFAULT_PRICING)
        self.save()
        logger.info("Pricing table reset to defaults")

    def save(self) -> None:
        if self.store is None:
            return
        self.store.set_setting(config.PRICING_SETTING_KEY, self.to_json())

    def as_dict(self) -> dict[str, dict[str, dict[int, int]]]:
        return copy.deepcopy(self._prices)

    def to_json(self) -> str:
        return json.dumps(
            {
                course: {st: {str(d): p for d, p in cells.items()} for st, cells in sessions.items()}
                for course, sessions in self._prices.items()
            }
        )

    def options(self, course: str, session_time: str) -> list[tuple[int, int]]:
        """(plan days, price) pairs for a course + session time, for dropdowns."""
        _check_keys(course, session_time, PLAN_DAYS[0])
        return [(d, self._prices[course][session_time][d]) for d in PLAN_DAYS]
