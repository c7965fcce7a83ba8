"""UltimateXO: board engine, session coordinator and web application."""

from .coordinator import SessionCoordinator
from .game import MetaGame, apply_move
from .server import app, create_app

__all__ = ["MetaGame", "SessionCoordinator", "app", "apply_move", "create_app"]
