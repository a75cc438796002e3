from .media import MediaAttachment

__all__ = [
    "MediaAttachment",
]
