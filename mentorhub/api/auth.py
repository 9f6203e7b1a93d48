import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub.crud import user as user_crud
from mentorhub.database import get_db
from mentorhub.models.user import ROLE_MENTOR, ROLE_STUDENT
from mentorhub.utils.security import authenticate_user, create_access_token, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

SELF_SERVICE_ROLES = {ROLE_STUDENT, ROLE_MENTOR}

# ===== REQUEST/RESPONSE MODELS =====

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # Bcrypt reads at most 72 bytes
    password: str = Field(..., min_length=6, max_length=72)
    role: Optional[str] = ROLE_STUDENT

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str
    role: str


def _issue_token(user) -> dict:
    access_token = create_access_token(data={"sub": user.email, "role": user.role})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": user.role,
    }

# ===== REGISTER ENDPOINT =====

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user_data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a student or mentor account"""
    requested_role = (user_data.role or ROLE_STUDENT).strip().lower()
    if requested_role not in SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=400,
            detail="Role must be one of: student, mentor",
        )

    normalized_email = user_data.email.strip().lower()
    if user_crud.get_user_by_email(db, normalized_email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        user = user_crud.create_user(
            db,
            name=user_data.name.strip(),
            email=normalized_email,
            password_hash=get_password_hash(user_data.password),
            role=requested_role,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Registration failed for %s", normalized_email)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("Registered %s account %s", requested_role, user.id)
    return {"message": "Registration successful", "id": user.id, "role": user.role}

# ===== LOGIN ENDPOINTS =====

@router.post("/login", response_model=Token)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Verify credentials and return access token"""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _issue_token(user)


@router.post("/token", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """OAuth2 password flow used by the interactive docs."""
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(user)
