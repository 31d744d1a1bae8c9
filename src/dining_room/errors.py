"""Exceptions shared by the engine and its storage collaborators."""


class DiningRoomError(Exception):
    """Base class for dining room errors."""


class StorageError(DiningRoomError):
    """Raised by a storage collaborator when a read or write fails."""


class InvalidArgument(DiningRoomError, ValueError):
    """Missing or malformed identifying fields."""
