import os
import re
import sys
from typing import Optional

from mentorhub import models
from mentorhub.crud import user as user_crud
from mentorhub.database import SessionLocal
from mentorhub.models.user import ROLE_ADMIN
from mentorhub.utils.security import get_password_hash


CONFIRM_PHRASE = "CREATE-FIRST-ADMIN"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _required_env(key: str) -> str:
    value = os.getenv(key, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {key}")
    return value


def validate_password(password: str) -> None:
    if len(password) < 8:
        raise ValueError("ADMIN_PASSWORD must be at least 8 characters.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("ADMIN_PASSWORD must be <= 72 bytes (bcrypt limit).")
    if not re.search(r"[A-Z]", password) or not re.search(r"[a-z]", password):
        raise ValueError("ADMIN_PASSWORD must mix upper and lower case letters.")
    if not re.search(r"\d", password):
        raise ValueError("ADMIN_PASSWORD must contain at least one digit.")


def create_first_admin(db, *, name: str, email: str, password: str) -> models.User:
    """Create the admin account; refuses when any admin already exists."""
    if db.query(models.User).filter(models.User.role == ROLE_ADMIN).count() > 0:
        raise ValueError(
            "Admin bootstrap blocked: an admin already exists. "
            "This command is one-time for first admin creation."
        )
    if user_crud.get_user_by_email(db, email):
        raise ValueError("ADMIN_EMAIL is already registered.")

    user = user_crud.create_user(
        db,
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=ROLE_ADMIN,
    )
    db.commit()
    return user


def bootstrap_admin() -> int:
    try:
        if not _is_truthy(os.getenv("ENABLE_ADMIN_BOOTSTRAP")):
            raise ValueError(
                "Bootstrap disabled. Set ENABLE_ADMIN_BOOTSTRAP=true to run."
            )
        if _required_env("ADMIN_BOOTSTRAP_CONFIRM") != CONFIRM_PHRASE:
            raise ValueError(
                f"Invalid ADMIN_BOOTSTRAP_CONFIRM. Expected exact phrase: {CONFIRM_PHRASE}"
            )

        name = _required_env("ADMIN_NAME")
        email = _required_env("ADMIN_EMAIL").lower()
        password = _required_env("ADMIN_PASSWORD")
        if not EMAIL_RE.match(email):
            raise ValueError("ADMIN_EMAIL is not a valid email format.")
        validate_password(password)

        db = SessionLocal()
        try:
            create_first_admin(db, name=name, email=email, password=password)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
    except Exception as exc:
        print(f"Admin bootstrap failed: {exc}", file=sys.stderr)
        return 1

    print(f"Admin created successfully: {email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(bootstrap_admin())
