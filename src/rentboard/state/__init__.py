"""Board view state."""

from rentboard.state.view import BoardView, ViewStore

__all__ = [
    "BoardView",
    "ViewStore",
]
