# meter_app/api/auth.py

from fastapi import APIRouter, HTTPException, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from bson import ObjectId
from bson.errors import InvalidId
import logging

from meter_app.core.config import settings
from meter_app.core.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()

# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def to_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

def now_utc():
    return datetime.now(timezone.utc)

# Password hashing (shared context)
from passlib.context import CryptContext
_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return _pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return _pwd_context.verify(plain, hashed)

def create_access_token(user_id: str, username: str) -> str:
    exp = now_utc() + timedelta(hours=int(settings.ACCESS_TOKEN_EXPIRE_HOURS or 24))
    payload = {"sub": user_id, "username": username, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Authorization header")
    return parts[1].strip()

# -------------------------------------------------------------------
# Schemas
# -------------------------------------------------------------------

class LoginIn(BaseModel):
    # web client sends either username or email
    username: str | None = None
    email: EmailStr | None = None
    usernameOrEmail: str | None = Field(default=None)
    password: str

    @model_validator(mode="after")
    def validate_identifier(self):
        if not (self.username or self.email or self.usernameOrEmail):
            raise ValueError("Provide username or email")
        return self

class TokenOut(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: dict

# -------------------------------------------------------------------
# Auth dependency
# -------------------------------------------------------------------

async def get_current_user(request: Request, db=Depends(get_db)) -> dict:
    """
    Usage:
      @router.get("/me")
      async def me(user=Depends(get_current_user)): ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    user = await db.users.find_one({"_id": to_object_id(user_id)})
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.get("is_active"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account inactive")

    # normalize id to string
    user = dict(user)
    user["id"] = str(user.pop("_id"))
    user.pop("hashed_password", None)
    return user

# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, db=Depends(get_db)):
    identifier = (
        (payload.username or "").strip()
        or (payload.email.lower().strip() if payload.email else "")
        or (payload.usernameOrEmail or "").strip()
    )

    user = await db.users.find_one({"$or": [{"username": identifier}, {"email": identifier.lower()}]})
    if not user or not verify_password(payload.password, user.get("hashed_password", "")):
        logger.info(f"Failed login for {identifier}")
        raise HTTPException(status_code=401, detail="Invalid username/email or password")

    if not user.get("is_active"):
        raise HTTPException(status_code=403, detail="Account inactive")

    token = create_access_token(
        user_id=str(user["_id"]),
        username=user.get("username", identifier),
    )

    return {
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "user": {
            "id": str(user["_id"]),
            "username": user.get("username"),
            "email": user.get("email"),
            "full_name": user.get("full_name"),
        },
    }

@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"success": True, "user": user}
