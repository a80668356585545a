from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from datetime import timedelta
from config import settings
from exceptions import get_user_exception
from schemas.users import UserOut
from utils.app_utils import Token, create_access_token, authenticate_user, get_current_user

router = APIRouter()


@router.post("/login", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Handles user authentication and generates JWT access token.
    Args:
        form_data (OAuth2PasswordRequestForm): Form containing username (email) and password
    Returns:
        dict: Contains the generated access token and token type
            {
                "access_token": str,
                "token_type": "bearer"
            }
    Raises:
        HTTPException: 401 Unauthorized if login credentials are invalid
    """
    user = await authenticate_user(email=form_data.username, password=form_data.password)
    if not user:
        raise get_user_exception()

    expiry_time = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(payload={"sub": user["email"]}, expiry=expiry_time)

    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
async def read_current_user(user_and_type: tuple = Depends(get_current_user)):
    """Profile of the logged in user, without the password hash."""
    user, user_type = user_and_type
    return UserOut(id=str(user["_id"]), role=user_type,
                   **{k: v for k, v in user.items() if k not in ("_id", "password", "role")})
