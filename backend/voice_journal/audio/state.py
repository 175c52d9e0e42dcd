"""Recorder and player state machines."""

from __future__ import annotations

from enum import Enum
from typing import Generic, Mapping, TypeVar

from voice_journal.core.errors import IllegalStateTransition


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class PlayerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


RECORDER_TRANSITIONS: Mapping[RecorderState, frozenset[RecorderState]] = {
    RecorderState.IDLE: frozenset({RecorderState.RECORDING}),
    # a capture that fails to start falls straight back to idle
    RecorderState.RECORDING: frozenset({RecorderState.STOPPING, RecorderState.IDLE}),
    RecorderState.STOPPING: frozenset({RecorderState.IDLE}),
}

PLAYER_TRANSITIONS: Mapping[PlayerState, frozenset[PlayerState]] = {
    PlayerState.IDLE: frozenset({PlayerState.LOADING}),
    PlayerState.LOADING: frozenset({PlayerState.PLAYING, PlayerState.IDLE}),
    PlayerState.PLAYING: frozenset({PlayerState.PAUSED, PlayerState.STOPPED, PlayerState.IDLE}),
    PlayerState.PAUSED: frozenset({PlayerState.PLAYING, PlayerState.STOPPED, PlayerState.IDLE}),
    PlayerState.STOPPED: frozenset({PlayerState.IDLE}),
}

S = TypeVar("S", RecorderState, PlayerState)


class StateMachine(Generic[S]):
    """Current state plus the table of legal moves out of it."""

    def __init__(self, name: str, initial: S, transitions: Mapping[S, frozenset[S]]) -> None:
        self.name = name
        self.state = initial
        self._transitions = transitions

    def can_move(self, target: S) -> bool:
        return target in self._transitions.get(self.state, frozenset())

    def move(self, target: S) -> S:
        if not self.can_move(target):
            raise IllegalStateTransition(self.name, self.state.value, target.value)
        previous = self.state
        self.state = target
        return previous

    def require(self, *states: S) -> None:
        """Raise unless the machine is in one of ``states``."""
        if self.state not in states:
            raise IllegalStateTransition(self.name, self.state.value, "/".join(s.value for s in states))


def recorder_machine() -> StateMachine[RecorderState]:
    return StateMachine("recorder", RecorderState.IDLE, RECORDER_TRANSITIONS)


def player_machine() -> StateMachine[PlayerState]:
    return StateMachine("player", PlayerState.IDLE, PLAYER_TRANSITIONS)


__all__ = [
    "RecorderState",
    "PlayerState",
    "StateMachine",
    "recorder_machine",
    "player_machine",
]
