"""Route group exports."""

from . import chargers, health, nearby, slots, users

__all__ = ["chargers", "health", "nearby", "slots", "users"]
