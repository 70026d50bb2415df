"""Client-side playback synchronization."""

from .state import PlayerAction, initial_state, reduce
from .synchronizer import PlaybackSynchronizer

__all__ = ["PlaybackSynchronizer", "PlayerAction", "initial_state", "reduce"]
