from fastapi import HTTPException, status


def get_user_exception():
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    return credentials_exception


def get_forbidden_exception(detail: str = "You are not authorized to perform this action"):
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def get_unknown_entity_exception(detail: str = "Entity not found"):
    entity_exception = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail
    )
    return entity_exception


def get_conflict_exception(detail: str):
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def get_bad_request_exception(detail: str):
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
