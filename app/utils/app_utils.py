from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from typing import Dict, Any
import bcrypt
import secrets
import string
from jose import JWTError, jwt
from bson import ObjectId
from bson.errors import InvalidId
from db import users_collection
from config import settings
from exceptions import get_forbidden_exception

from datetime import datetime, timezone, timedelta

import logging

UTC = timezone.utc

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/login")

secret_key = settings.SECRET_KEY
algorithm = settings.ALGORITHM

logger = logging.getLogger(__name__)


class Token(BaseModel):
    access_token: str
    token_type: str


def generate_password(length: int = 8) -> str:
    # letters and digits only
    allowed_characters = string.ascii_letters + string.digits
    return ''.join(secrets.choice(allowed_characters) for _ in range(length))


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    hashed_password = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed_password.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')

    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password)


def create_access_token(payload: Dict[str, Any], expiry: timedelta):
    data_to_encode = {"data": payload}
    expiry_delta = datetime.now(UTC) + expiry
    data_to_encode.update({"exp": expiry_delta})
    encoded_data: str = jwt.encode(data_to_encode, secret_key, algorithm)

    return encoded_data


async def authenticate_user(email: str, password: str):
    """
    authenticates user
    args:-
        - email: the user's email
        - password: password
    """
    is_valid_email = "@" in email and "." in email
    if not is_valid_email:
        return False

    user = await users_collection.find_one({"email": email})
    if not user:
        return False

    if not verify_password(plain_password=password, hashed_password=user["password"]):
        return False
    return user


async def get_current_user(token: str = Depends(oauth2_bearer)) -> tuple:
    """Resolve the bearer token to `(user, role)`; role is "intern" or "admin"."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=algorithm)
        data = payload.get("data")

        if data is None:
            raise HTTPException(status_code=401, detail="Invalid token data.")

        email: str = data.get("sub")
        if email is None:
            raise HTTPException(status_code=401, detail="Could not validate user.")

        user = await users_collection.find_one({"email": email})
        if not user:
            raise HTTPException(status_code=401, detail="User not found.")

        user["_id"] = str(user["_id"])
        return user, user.get("role", "intern")

    except JWTError as e:
        logger.warning(f"JWT Error {e}")
        raise HTTPException(status_code=401, detail="JWT Error - could not validate user.")


def require_admin(user_and_type: tuple) -> dict:
    user, user_type = user_and_type
    if user_type != "admin":
        raise get_forbidden_exception("You are not authorized to perform this function")
    return user


async def fetch_user(user_id: str):
    try:
        user = await users_collection.find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        return None
    if user:
        user["_id"] = str(user["_id"])
    return user
