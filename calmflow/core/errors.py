"""
Error taxonomy for the session core.

All of these are local to the core and are expected to be caught at the
presentation boundary (see `calmflow.main`), never treated as process-fatal.
"""


class SessionCoreError(Exception):
    error_code = "SESSION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SessionCoreError, LookupError):
    """A content library lookup missed. The session does not start."""

    error_code = "NOT_FOUND"

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class SessionAlreadyActiveError(SessionCoreError):
    error_code = "SESSION_ALREADY_ACTIVE"

    def __init__(self, source_id: str):
        super().__init__(f"A session is already in progress: {source_id}")
        self.source_id = source_id


class PhaseNotCompleteError(SessionCoreError):
    error_code = "PHASE_NOT_COMPLETE"

    def __init__(self, activity_id: str):
        super().__init__(f"Activity has not completed yet: {activity_id}")
        self.activity_id = activity_id


class StaleSnapshotError(SessionCoreError):
    """Recovery data references content that no longer resolves."""

    error_code = "STALE_SNAPSHOT"

    def __init__(self, key: str, missing_id: str):
        super().__init__(f"Snapshot {key} references missing activity: {missing_id}")
        self.key = key
        self.missing_id = missing_id


class NoActiveSessionError(SessionCoreError):
    error_code = "NO_ACTIVE_SESSION"

    def __init__(self, operation: str):
        super().__init__(f"No session in progress for {operation}")
        self.operation = operation
