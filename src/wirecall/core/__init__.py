from wirecall.core.config import Settings
from wirecall.core.module import Module

__all__ = [
    "Module",
    "Settings",
]
