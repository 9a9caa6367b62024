# engine errors -> HTTP status

from fastapi import HTTPException

from asset_sync.orchestration.asset_sync.errors import (
    AssetSyncError, ConfigurationError, ConflictError, InvalidArgument,
    InvalidStateTransition, NotFoundError, SignatureInvalid,
)


_STATUS = (
    (ConflictError, 409),
    (NotFoundError, 404),
    (SignatureInvalid, 401),
    (InvalidStateTransition, 400),
    (InvalidArgument, 400),
    (ConfigurationError, 400),
)


def http_error(exc: AssetSyncError) -> HTTPException:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
