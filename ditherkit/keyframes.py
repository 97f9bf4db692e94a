"""Keyframe interpolation for animated settings groups.

Each settings record declares an ``INTERPOLATION`` descriptor mapping every
field to a :class:`~ditherkit.settings.FieldKind`. Numeric fields are blended,
integer fields are blended and rounded half up, discrete fields hold the value
of the earlier keyframe until the later keyframe is reached.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterator, Mapping, Optional, Tuple, TypeVar

from .errors import ConfigurationError
from .settings import FieldKind, parse_bool, parse_enum

T = TypeVar("T")


class Easing(str, Enum):
    LINEAR = "linear"
    EASE_IN = "ease-in"
    EASE_OUT = "ease-out"
    EASE_IN_OUT = "ease-in-out"


class TransitionMode(str, Enum):
    BLEND = "blend"
    STEP = "step"


_EASINGS: Dict[Easing, Callable[[float], float]] = {
    Easing.LINEAR: lambda t: t,
    Easing.EASE_IN: lambda t: t * t,
    Easing.EASE_OUT: lambda t: 1 - (1 - t) * (1 - t),
    Easing.EASE_IN_OUT: lambda t: t * t * (3 - 2 * t),
}


def apply_easing(easing: Easing, t: float) -> float:
    t = min(1.0, max(0.0, t))
    return _EASINGS[parse_enum(Easing, easing, "easing")](t)


def _frame_number(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"Frame must be an integer, got {value!r}")
    return value


@dataclass(frozen=True)
class Keyframe(Generic[T]):
    frame: int
    settings: T
    easing: Easing = Easing.LINEAR
    transition_mode: Optional[TransitionMode] = None

    def __post_init__(self) -> None:
        if _frame_number(self.frame) < 0:
            raise ConfigurationError(f"Keyframe frame must be >= 0, got {self.frame}")
        object.__setattr__(self, "easing", parse_enum(Easing, self.easing, "easing"))
        if self.transition_mode is not None:
            mode = parse_enum(TransitionMode, self.transition_mode, "transition mode")
            object.__setattr__(self, "transition_mode", mode)

    @property
    def effective_transition(self) -> TransitionMode:
        return self.transition_mode or TransitionMode.BLEND

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "frame": self.frame,
            "settings": self.settings.to_dict(),
            "easing": self.easing.value,
        }
        if self.transition_mode is not None:
            payload["transitionMode"] = self.transition_mode.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], settings_cls: Any) -> "Keyframe":
        try:
            frame = payload["frame"]
            settings = payload["settings"]
        except (KeyError, TypeError):
            raise ConfigurationError("Keyframe payload needs 'frame' and 'settings'") from None
        mode = payload.get("transitionMode", payload.get("transition_mode"))
        return cls(
            frame=frame,
            settings=settings_cls.from_dict(settings),
            easing=payload.get("easing", Easing.LINEAR),
            transition_mode=mode,
        )


@dataclass(frozen=True)
class AnimatedSettings(Generic[T]):
    """Keyframes for one settings group, kept sorted by frame.

    Instances are immutable; the editing helpers return updated copies.
    """

    enabled: bool = False
    keyframes: Tuple[Keyframe[T], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "enabled", parse_bool("enabled", self.enabled))
        ordered = tuple(sorted(self.keyframes, key=lambda k: k.frame))
        for previous, current in zip(ordered, ordered[1:]):
            if previous.frame == current.frame:
                raise ConfigurationError(f"Duplicate keyframe at frame {current.frame}")
        object.__setattr__(self, "keyframes", ordered)

    def __iter__(self) -> Iterator[Keyframe[T]]:
        return iter(self.keyframes)

    def __len__(self) -> int:
        return len(self.keyframes)

    @property
    def frames(self) -> Tuple[int, ...]:
        return tuple(k.frame for k in self.keyframes)

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.keyframes)

    def keyframe_at(self, frame: int) -> Optional[Keyframe[T]]:
        for keyframe in self.keyframes:
            if keyframe.frame == frame:
                return keyframe
        return None

    def next_keyframe(self, frame: int) -> Optional[Keyframe[T]]:
        for keyframe in self.keyframes:
            if keyframe.frame > frame:
                return keyframe
        return None

    def previous_keyframe(self, frame: int) -> Optional[Keyframe[T]]:
        for keyframe in reversed(self.keyframes):
            if keyframe.frame < frame:
                return keyframe
        return None

    def with_keyframe(self, keyframe: Keyframe[T]) -> "AnimatedSettings[T]":
        """Insert ``keyframe``, replacing any keyframe already on that frame."""
        kept = tuple(k for k in self.keyframes if k.frame != keyframe.frame)
        return replace(self, keyframes=kept + (keyframe,))

    def without_keyframe(self, frame: int) -> "AnimatedSettings[T]":
        return replace(self, keyframes=tuple(k for k in self.keyframes if k.frame != frame))

    def with_easing(self, frame: int, easing: Easing) -> "AnimatedSettings[T]":
        return self._update(frame, easing=easing)

    def with_transition(self, frame: int, mode: Optional[TransitionMode]) -> "AnimatedSettings[T]":
        return self._update(frame, transition_mode=mode)

    def with_enabled(self, enabled: bool) -> "AnimatedSettings[T]":
        return replace(self, enabled=enabled)

    def cleared(self) -> "AnimatedSettings[T]":
        return replace(self, keyframes=())

    def _update(self, frame: int, **changes: Any) -> "AnimatedSettings[T]":
        if self.keyframe_at(frame) is None:
            raise ConfigurationError(f"No keyframe at frame {frame}")
        updated = tuple(replace(k, **changes) if k.frame == frame else k for k in self.keyframes)
        return replace(self, keyframes=updated)

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "keyframes": [k.to_dict() for k in self.keyframes]}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], settings_cls: Any) -> "AnimatedSettings":
        if not isinstance(payload, Mapping):
            raise ConfigurationError("Animated settings payload must be a mapping")
        keyframes = payload.get("keyframes") or []
        return cls(
            enabled=payload.get("enabled", False),
            keyframes=tuple(Keyframe.from_dict(item, settings_cls) for item in keyframes),
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def interpolate(start: T, end: T, t: float) -> T:
    """Blend two records of the same type field by field at position ``t``."""
    if type(start) is not type(end):
        raise ConfigurationError(
            f"Cannot interpolate {type(start).__name__} with {type(end).__name__}"
        )
    descriptor = getattr(type(start), "INTERPOLATION", None)
    if descriptor is None:
        raise ConfigurationError(f"{type(start).__name__} has no interpolation descriptor")

    changes: Dict[str, Any] = {}
    for field in fields(start):
        kind = descriptor.get(field.name, FieldKind.DISCRETE)
        a = getattr(start, field.name)
        b = getattr(end, field.name)
        if kind is FieldKind.DISCRETE or not (_is_number(a) and _is_number(b)):
            continue
        value = a + (b - a) * t
        changes[field.name] = math.floor(value + 0.5) if kind is FieldKind.INTEGER else value
    return replace(start, **changes)


def resolve(animated: AnimatedSettings[T], frame: int, static_fallback: T) -> T:
    """Settings in effect at ``frame``.

    Keyframe frames and frames outside the keyframe range return the stored
    settings object itself, never a recomputed copy.
    """
    frame = _frame_number(frame)
    if not animated.is_active:
        return static_fallback

    keyframes = animated.keyframes
    if frame <= keyframes[0].frame:
        return keyframes[0].settings
    if frame >= keyframes[-1].frame:
        return keyframes[-1].settings

    index = bisect_right(animated.frames, frame)
    k0 = keyframes[index - 1]
    k1 = keyframes[index]
    if frame == k0.frame:
        return k0.settings

    t = (frame - k0.frame) / (k1.frame - k0.frame)
    eased = apply_easing(k1.easing, t)
    if k1.effective_transition is TransitionMode.STEP:
        return k1.settings if eased >= 1 else k0.settings
    return interpolate(k0.settings, k1.settings, eased)
