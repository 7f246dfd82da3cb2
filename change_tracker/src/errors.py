from __future__ import annotations


class ChangeTrackerError(Exception):
    pass


class DecodeError(ChangeTrackerError):
    """Snapshot content is not a well-formed JSON document."""


class UnsupportedShapeError(ChangeTrackerError):
    """A value is not one of the document kinds the differ dispatches on."""


class StorageError(ChangeTrackerError):
    pass
