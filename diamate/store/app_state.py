"""
Client health-data store.

One explicit application-state object per running app: it owns glucose
readings, meals, favorites, AI memory and the entitlement snapshot, exposes
named actions that mutate it, and mirrors a trimmed projection of its state
to a StateRepository after every action.

Actions are synchronous. Persistence is fire-and-forget: when an event loop
is running the write is scheduled as a task, otherwise the store is marked
dirty until ``flush()``.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Literal, Optional, Set, Type, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from ..models import (
    AIMemory, Entitlement, FavoriteMeal, GlucoseReading, MealLog, UserProfile, default_entitlement,
)
from ..models.health import CamelModel, ensure_aware
from .persistence import StateRepository

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T", GlucoseReading, MealLog)

MAX_READINGS = 1000
MAX_PERSISTED_READINGS = 500
MAX_MEALS = 500
MAX_PERSISTED_MEALS = 200
MAX_FAVORITES = 50

DEDUP_WINDOW_MS = 5 * 60 * 1000
RECENT_WINDOW = timedelta(days=7)

DEFAULT_TARGET_LOW = 70
DEFAULT_TARGET_HIGH = 180
HYPO_BELOW = 70
HYPER_ABOVE = 250

FEATURE_CHAT = "chat"
FEATURE_VISION = "vision"


class PersistedState(CamelModel):
    """Shape of the projection written to device storage."""
    is_onboarded: bool = False
    user_id: Optional[str] = None
    profile: Optional[UserProfile] = None
    entitlement: Optional[Entitlement] = None
    glucose_readings: List[GlucoseReading] = Field(default_factory=list)
    meal_logs: List[MealLog] = Field(default_factory=list)
    last_health_sync: Optional[datetime] = None
    ai_memory: AIMemory = Field(default_factory=AIMemory)
    ai_personalization_enabled: bool = True
    favorite_meals: List[FavoriteMeal] = Field(default_factory=list)
    language: Literal['tr', 'en'] = 'tr'


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def keep_newest(items: List[T], limit: int) -> List[T]:
    """The ``limit`` most recent items by timestamp, left in their current order."""
    if len(items) <= limit:
        return list(items)
    newest = sorted(items, key=lambda item: item.timestamp, reverse=True)[:limit]
    kept = {id(item) for item in newest}
    return [item for item in items if id(item) in kept]


def _coerce(model: Type[M], value: Union[M, Dict[str, Any]]) -> M:
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def _camel_keys(partial: Dict[str, Any]) -> Dict[str, Any]:
    # Accepts snake_case or camelCase keys
    return {to_camel(key) if "_" in key else key: value for key, value in partial.items()}


class HealthStore:
    """
    Application state of the mobile client.

    Args:
        repository: Where the persisted projection is loaded from and saved to
        clock: Returns the current time (timezone-aware); injectable for tests
        local_tz: Timezone that defines "today" for ``get_today_glucose``;
            defaults to the system timezone
    """

    def __init__(
        self,
        repository: StateRepository,
        clock: Callable[[], datetime] = utc_clock,
        local_tz: Optional[tzinfo] = None,
    ):
        self.repository = repository
        self.clock = clock
        self.local_tz = local_tz

        self.language: str = 'tr'
        self.ai_personalization_enabled = True
        self.last_health_sync: Optional[datetime] = None
        self._reset_user_state()

        self.dirty = False
        self._pending: Set[asyncio.Task] = set()
        self._write_lock: Optional[asyncio.Lock] = None

    def _reset_user_state(self) -> None:
        self.is_onboarded = False
        self.user_id: Optional[str] = None
        self.profile: Optional[UserProfile] = None
        self.entitlement: Entitlement = default_entitlement(self.today())
        self.glucose_readings: List[GlucoseReading] = []
        self.meal_logs: List[MealLog] = []
        self.ai_memory = AIMemory()
        self.favorite_meals: List[FavoriteMeal] = []
        self.last_health_sync = None

    def _now(self) -> datetime:
        return ensure_aware(self.clock())

    def today(self) -> str:
        """Current UTC date, YYYY-MM-DD."""
        return self._now().astimezone(timezone.utc).date().isoformat()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persisted_snapshot(self) -> Dict[str, Any]:
        """Projection written to storage; lists are trimmed tighter than in memory."""
        return {
            "isOnboarded": self.is_onboarded,
            "userId": self.user_id,
            "profile": self.profile.to_storage() if self.profile else None,
            "entitlement": self.entitlement.to_storage(),
            "glucoseReadings": [r.to_storage() for r in keep_newest(self.glucose_readings, MAX_PERSISTED_READINGS)],
            "mealLogs": [m.to_storage() for m in keep_newest(self.meal_logs, MAX_PERSISTED_MEALS)],
            "lastHealthSync": self.last_health_sync.isoformat() if self.last_health_sync else None,
            "aiMemory": self.ai_memory.to_storage(),
            "aiPersonalizationEnabled": self.ai_personalization_enabled,
            "favoriteMeals": [f.to_storage() for f in self.favorite_meals],
            "language": self.language,
        }

    def _persist(self) -> None:
        snapshot = self.persisted_snapshot()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.dirty = True
            return

        task = loop.create_task(self._write(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, snapshot: Dict[str, Any]) -> None:
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        # Writes land in the order the actions happened
        async with self._write_lock:
            try:
                await self.repository.save(snapshot)
                self.dirty = False
            except Exception as e:
                self.dirty = True
                logger.warning(f"Persisting store state failed: {e}")

    async def flush(self) -> None:
        """Wait for scheduled writes; write now if state changed without a loop."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
        if self.dirty:
            await self._write(self.persisted_snapshot())

    async def hydrate(self) -> bool:
        """
        Restore state from the repository.

        Missing data keeps the defaults. Unreadable or invalid data is
        logged and also leaves the defaults in place; this never raises.

        Returns:
            bool: True if persisted state was applied
        """
        try:
            data = await self.repository.load()
            if data is None:
                return False
            state = PersistedState.model_validate(data)
        except Exception as e:
            logger.warning(f"Stored state unreadable, starting from defaults: {e}")
            return False

        self.is_onboarded = state.is_onboarded
        self.user_id = state.user_id
        self.profile = state.profile
        self.entitlement = state.entitlement or default_entitlement(self.today())
        self.glucose_readings = keep_newest(state.glucose_readings, MAX_READINGS)
        self.meal_logs = keep_newest(state.meal_logs, MAX_MEALS)
        self.last_health_sync = state.last_health_sync
        self.ai_memory = state.ai_memory
        self.ai_personalization_enabled = state.ai_personalization_enabled
        self.favorite_meals = state.favorite_meals[-MAX_FAVORITES:]
        self.language = state.language
        logger.info(
            "Store hydrated",
            extra={"extra_fields": {
                "readings": len(self.glucose_readings),
                "meals": len(self.meal_logs),
                "favorites": len(self.favorite_meals),
            }}
        )
        return True

    # ------------------------------------------------------------------
    # Lifecycle, auth and profile
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Reset the daily usage counters when the UTC date has changed."""
        today = self.today()
        if self.entitlement.usage.last_reset_date == today:
            return
        usage = self.entitlement.usage.model_copy(update={
            "daily_chat_count": 0,
            "daily_vision_count": 0,
            "last_reset_date": today,
        })
        self.entitlement = self.entitlement.model_copy(update={"usage": usage})
        self._persist()

    def set_user_id(self, user_id: str) -> None:
        self.user_id = user_id
        self._persist()

    def set_onboarded(self, value: bool) -> None:
        self.is_onboarded = value
        self._persist()

    def set_profile(self, partial: Union[UserProfile, Dict[str, Any]]) -> None:
        """Shallow-merge ``partial`` into the profile (creating it if unset)."""
        if isinstance(partial, UserProfile):
            partial = partial.model_dump(by_alias=True, exclude_unset=True)
        current = self.profile.model_dump(by_alias=True) if self.profile else {}
        current.update(_camel_keys(partial))
        self.profile = UserProfile.model_validate(current)
        self._persist()

    def set_entitlement(self, entitlement: Union[Entitlement, Dict[str, Any]]) -> None:
        self.entitlement = _coerce(Entitlement, entitlement)
        self._persist()

    def set_language(self, language: Literal['tr', 'en']) -> None:
        if language not in ('tr', 'en'):
            raise ValueError(f"Unsupported language: {language}")
        self.language = language
        self._persist()

    def record_usage(self, feature: str) -> None:
        """Bump today's local counter after a successful chat or vision call."""
        self.initialize()
        usage = self.entitlement.usage
        if feature == FEATURE_CHAT:
            usage = usage.model_copy(update={"daily_chat_count": usage.daily_chat_count + 1})
        elif feature == FEATURE_VISION:
            usage = usage.model_copy(update={"daily_vision_count": usage.daily_vision_count + 1})
        else:
            raise ValueError(f"Unknown feature: {feature}")
        self.entitlement = self.entitlement.model_copy(update={"usage": usage})
        self._persist()

    def logout(self) -> None:
        """Drop everything tied to the signed-in user; language and the personalization toggle stay."""
        self._reset_user_state()
        self._persist()

    # ------------------------------------------------------------------
    # Health data
    # ------------------------------------------------------------------

    def add_glucose_reading(self, reading: Union[GlucoseReading, Dict[str, Any]]) -> bool:
        """
        Append a reading unless one already exists within 5 minutes of it.

        Returns:
            bool: False if the reading was dropped as a duplicate
        """
        reading = _coerce(GlucoseReading, reading)
        for existing in self.glucose_readings:
            delta_ms = abs((existing.timestamp - reading.timestamp).total_seconds()) * 1000
            if delta_ms < DEDUP_WINDOW_MS:
                return False

        self.glucose_readings = keep_newest(self.glucose_readings + [reading], MAX_READINGS)
        self._persist()
        return True

    def sync_health_data(self, readings: List[Union[GlucoseReading, Dict[str, Any]]]) -> int:
        """
        Merge a batch from a device health source.

        Readings whose exact timestamp is already stored are skipped; the
        result is ordered newest first and capped.

        Returns:
            int: Number of readings taken from the batch
        """
        batch = [_coerce(GlucoseReading, r) for r in readings]
        known = {r.timestamp for r in self.glucose_readings}
        fresh = [r for r in batch if r.timestamp not in known]

        merged = sorted(self.glucose_readings + fresh, key=lambda r: r.timestamp, reverse=True)
        self.glucose_readings = merged[:MAX_READINGS]
        self.last_health_sync = self._now()
        self._persist()
        return len(fresh)

    def add_meal_log(self, meal: Union[MealLog, Dict[str, Any]]) -> None:
        self.meal_logs = keep_newest(self.meal_logs + [_coerce(MealLog, meal)], MAX_MEALS)
        self._persist()

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def add_favorite_meal(self, meal: Union[FavoriteMeal, Dict[str, Any]]) -> None:
        self.favorite_meals = (self.favorite_meals + [_coerce(FavoriteMeal, meal)])[-MAX_FAVORITES:]
        self._persist()

    def remove_favorite_meal(self, meal_id: str) -> None:
        self.favorite_meals = [m for m in self.favorite_meals if m.id != meal_id]
        self._persist()

    def use_favorite_meal(self, meal_id: str) -> None:
        self.favorite_meals = [
            m.model_copy(update={"usage_count": m.usage_count + 1}) if m.id == meal_id else m
            for m in self.favorite_meals
        ]
        self._persist()

    # ------------------------------------------------------------------
    # AI personalization
    # ------------------------------------------------------------------

    def update_ai_memory(self, partial: Dict[str, Any]) -> None:
        """Shallow merge: top-level keys of ``partial`` replace the stored ones."""
        current = self.ai_memory.model_dump(by_alias=True)
        current.update(_camel_keys(partial))
        self.ai_memory = AIMemory.model_validate(current)
        self._persist()

    def clear_ai_memory(self) -> None:
        self.ai_memory = AIMemory()
        self._persist()

    def toggle_ai_personalization(self, enabled: bool) -> None:
        self.ai_personalization_enabled = enabled
        self._persist()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def _week_window(self) -> datetime:
        return self._now() - RECENT_WINDOW

    def _target_band(self) -> tuple:
        low = (self.profile.target_low if self.profile else None) or DEFAULT_TARGET_LOW
        high = (self.profile.target_high if self.profile else None) or DEFAULT_TARGET_HIGH
        return low, high

    def _week_values(self) -> List[float]:
        since = self._week_window()
        return [r.mgdl for r in self.glucose_readings if r.timestamp >= since]

    def get_recent_context(self) -> Dict[str, Any]:
        """
        Personalization payload for AI requests.

        Returns ``{}`` when personalization is off or there are no readings
        in the last 7 days; stats are never made up from nothing.
        """
        if not self.ai_personalization_enabled:
            return {}

        values = self._week_values()
        if not values:
            return {}

        low, high = self._target_band()
        since = self._week_window()
        in_range = [v for v in values if low <= v <= high]

        profile = self.profile or UserProfile()
        insulin_facts = {
            "icr": profile.icr,
            "isf": profile.isf,
            "targetLow": profile.target_low,
            "targetHigh": profile.target_high,
            "activeInsulinHours": profile.active_insulin_hours,
            "insulinType": profile.insulin_type,
        }
        profile_facts = dict(self.ai_memory.profile_facts)
        profile_facts.update({k: v for k, v in insulin_facts.items() if v is not None})

        return {
            "stats": {
                "avgBG": round_half_up(sum(values) / len(values)),
                "timeInRangePct": round_half_up(len(in_range) / len(values) * 100),
                "hypoEvents": len([v for v in values if v < HYPO_BELOW]),
                "hyperEvents": len([v for v in values if v > HYPER_ABOVE]),
                "mealsLogged": len([m for m in self.meal_logs if m.timestamp >= since]),
                "readingsCount": len(values),
            },
            "profileFacts": profile_facts,
            "memorySummary": self.ai_memory.memory_summary,
        }

    def get_today_glucose(self) -> List[GlucoseReading]:
        """Readings since local midnight."""
        local_now = self._now().astimezone(self.local_tz)
        midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return [r for r in self.glucose_readings if r.timestamp >= midnight]

    def get_week_stats(self) -> Dict[str, Any]:
        """
        Fixed-shape 7-day summary.

        With no readings: ``{"avgBG": None, "timeInRange": None, "readings": 0}``.
        """
        values = self._week_values()
        if not values:
            return {"avgBG": None, "timeInRange": None, "readings": 0}

        low, high = self._target_band()
        in_range = [v for v in values if low <= v <= high]
        return {
            "avgBG": round_half_up(sum(values) / len(values)),
            "timeInRange": round_half_up(len(in_range) / len(values) * 100),
            "readings": len(values),
            "hypoCount": len([v for v in values if v < HYPO_BELOW]),
            "hyperCount": len([v for v in values if v > HYPER_ABOVE]),
        }
