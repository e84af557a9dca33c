from fastapi import HTTPException, Request, status

from src.soulgraph.engine import RelationshipEngine
from src.soulgraph.errors import InvalidStateError, NotFoundError, SoulGraphError, ValidationError


def get_engine(request: Request) -> RelationshipEngine:
    return request.app.state.engine


def http_error(e: SoulGraphError) -> HTTPException:
    """Translate a domain error into the matching HTTP status."""
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, InvalidStateError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))
