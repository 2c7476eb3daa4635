"""Key bindings, built once from config and passed to the wizard."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Mapping, Optional


@dataclass(frozen=True)
class KeyMap:
    up: tuple[str, ...] = ("up", "k")
    down: tuple[str, ...] = ("down", "j", "tab")
    left: tuple[str, ...] = ("left", "h")
    right: tuple[str, ...] = ("right", "l")
    confirm: tuple[str, ...] = ("enter",)
    back: tuple[str, ...] = ("escape",)
    toggle: tuple[str, ...] = ("space",)
    select_all: tuple[str, ...] = ("a",)
    select_none: tuple[str, ...] = ("n",)
    presets: tuple[str, ...] = ("p",)
    load_config: tuple[str, ...] = ("l",)
    restart: tuple[str, ...] = ("enter", "r")

    @classmethod
    def actions(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, overrides: Optional[Mapping[str, list[str]]] = None) -> "KeyMap":
        """Default bindings with the given actions replaced."""
        kwargs = {}
        for action, keys in (overrides or {}).items():
            if action not in cls.actions():
                raise ValueError(f"unknown key action: {action}")
            kwargs[action] = tuple(keys)
        return cls(**kwargs)

    def matches(self, key: str, action: str, typing: bool = False) -> bool:
        """True if ``key`` is bound to ``action``.

        With ``typing`` set, single-character bindings are ignored so the
        character reaches the focused text field.
        """
        bound = getattr(self, action)
        if key not in bound:
            return False
        if typing and len(key) == 1:
            return False
        return True

    def help(self, action: str) -> str:
        return "/".join(getattr(self, action))
