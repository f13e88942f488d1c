from . import contacts, health, workflows

__all__ = [
    "contacts",
    "health",
    "workflows",
]
