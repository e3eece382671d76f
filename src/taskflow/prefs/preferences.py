# src/taskflow/prefs/preferences.py

"""
User preferences (theme + feature flags).

Unlike tasks, preferences are updated optimistically: local state changes
first and remote persistence is best-effort. Loading never raises; any
backend problem falls back to defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, replace
from enum import StrEnum
from typing import Any

from ..core.errors import BackendError
from ..core.ports import Identity, TableBackend

logger = logging.getLogger(__name__)

TABLE = "user_preferences"


class Theme(StrEnum):
    LIGHT = "light"
    CLASSIC_DARK = "classic-dark"

    @classmethod
    def from_db(cls, raw: str | None) -> Theme:
        # Older rows may hold "dark" or "system" from the four-valued enum.
        s = (raw or "").strip().lower()
        if s in ("classic-dark", "dark"):
            return cls.CLASSIC_DARK
        return cls.LIGHT


@dataclass(frozen=True, slots=True)
class Preferences:
    theme: Theme = Theme.LIGHT
    feature_previews: bool = False
    command_menu_enabled: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Preferences:
        return cls(
            theme=Theme.from_db(row.get("theme")),
            feature_previews=bool(row.get("feature_previews", False)),
            command_menu_enabled=bool(row.get("command_menu_enabled", True)),
        )

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["theme"] = self.theme.value
        return row


DEFAULT_PREFERENCES = Preferences()

ThemeListener = Callable[[Theme], None]


class ThemeContext:
    """
    Holds the single active theme tag for the UI.

    Passed explicitly to whoever renders; listeners are notified on change.
    """

    def __init__(self, theme: Theme = Theme.LIGHT) -> None:
        self._theme = theme
        self._listeners: list[ThemeListener] = []

    @property
    def theme(self) -> Theme:
        return self._theme

    def subscribe(self, listener: ThemeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, theme: Theme) -> None:
        if theme == self._theme:
            return
        self._theme = theme
        logger.debug("theme applied: %s", theme.value)
        for listener in list(self._listeners):
            try:
                listener(theme)
            except Exception:
                logger.exception("theme listener failed")


class PreferencesStore:
    def __init__(self, backend: TableBackend, context: ThemeContext) -> None:
        self._backend = backend
        self._context = context
        self._identity: Identity | None = None
        self.preferences: Preferences = DEFAULT_PREFERENCES
        self.loading: bool = False
        self._context.apply(self.preferences.theme)

    @property
    def theme(self) -> Theme:
        return self.preferences.theme

    def _set(self, prefs: Preferences) -> None:
        self.preferences = prefs
        self._context.apply(prefs.theme)

    async def set_identity(self, identity: Identity | None) -> Preferences:
        """Switch to a new identity and (re)load its preferences."""
        self._identity = identity
        self._set(DEFAULT_PREFERENCES)
        if identity is None:
            return self.preferences
        return await self.load()

    async def load(self) -> Preferences:
        if self._identity is None:
            self._set(DEFAULT_PREFERENCES)
            return self.preferences

        self.loading = True
        user_id = self._identity.user_id
        try:
            row = await self._backend.select(TABLE, eq={"user_id": user_id}, single=True)
            if isinstance(row, Mapping):
                self._set(Preferences.from_row(row))
                logger.debug("preferences loaded user=%s theme=%s", user_id, self.preferences.theme)
            else:
                self._set(DEFAULT_PREFERENCES)
                await self._create_defaults(user_id)
        except BackendError as e:
            logger.warning("preferences unavailable (%s); using defaults", e)
            self._set(DEFAULT_PREFERENCES)
        finally:
            self.loading = False
        return self.preferences

    async def _create_defaults(self, user_id: str) -> None:
        try:
            await self._backend.insert(TABLE, {"user_id": user_id, **DEFAULT_PREFERENCES.to_row()})
            logger.info("created default preferences user=%s", user_id)
        except BackendError as e:
            logger.warning("failed to create default preferences: %s", e)

    async def update_theme(self, theme: Theme | str) -> Preferences:
        theme = Theme(theme)
        self._set(replace(self.preferences, theme=theme))
        if self._identity is None:
            return self.preferences
        try:
            await self._backend.upsert(
                TABLE,
                {"user_id": self._identity.user_id, **self.preferences.to_row()},
                on_conflict="user_id",
            )
        except BackendError as e:
            logger.warning("theme kept locally only: %s", e)
        return self.preferences

    async def update_preferences(self, **changes: Any) -> Preferences:
        allowed = {"theme", "feature_previews", "command_menu_enabled"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"unknown preference: {', '.join(sorted(unknown))}")
        if not changes:
            return self.preferences
        if "theme" in changes:
            changes["theme"] = Theme(changes["theme"])
        for flag in ("feature_previews", "command_menu_enabled"):
            if flag in changes:
                changes[flag] = bool(changes[flag])

        self._set(replace(self.preferences, **changes))
        if self._identity is None:
            return self.preferences

        values = {k: (v.value if isinstance(v, Theme) else v) for k, v in changes.items()}
        try:
            await self._backend.update(TABLE, values, eq={"user_id": self._identity.user_id})
        except BackendError as e:
            logger.warning("preferences kept locally only: %s", e)
        return self.preferences
