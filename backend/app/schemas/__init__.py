from app.schemas import audit, contact, workflow

__all__ = [
    "audit",
    "contact",
    "workflow",
]
