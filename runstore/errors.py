class RunStoreError(Exception):
    """Base class for errors raised by runstore"""


class StorageConnectionError(RunStoreError):
    """The storage backend could not be reached"""


class IntegrityViolation(RunStoreError):
    """An insert did not affect exactly one row"""

    def __init__(self, run_id, affected=None):
        self.run_id = run_id
        self.affected = affected
        if affected is None:
            msg = f"Run {run_id!r} already exists"
        else:
            msg = f"Saving run {run_id!r} affected {affected} rows, expected 1"
        super().__init__(msg)


class DecodeError(RunStoreError):
    """A stored blob could not be decompressed or deserialized"""

    def __init__(self, run_id, column, reason):
        self.run_id = run_id
        self.column = column
        super().__init__(f"Could not decode {column!r} of run {run_id!r}: {reason}")


class QueryError(RunStoreError, ValueError):
    """Malformed query criteria"""


class QueryTimeout(RunStoreError):
    """A statement ran past the configured per-query timeout"""
