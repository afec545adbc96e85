from . import health, planning, attendance, workflows, promotions, news

__all__ = [
    "health",
    "planning",
    "attendance",
    "workflows",
    "promotions",
    "news",
]
