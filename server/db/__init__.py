from .base import Base
from .models import MediaAttachment

__all__ = [
    "Base",
    "MediaAttachment",
]
