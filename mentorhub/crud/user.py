from typing import Optional

from sqlalchemy.orm import Session

from mentorhub import models
from mentorhub.models.connection import CONNECTION_ACCEPTED


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_active_user_with_role(db: Session, user_id: int, role: str) -> Optional[models.User]:
    return db.query(models.User).filter(
        models.User.id == user_id,
        models.User.role == role,
        models.User.is_active.is_(True),
    ).first()


def create_user(db: Session, *, name: str, email: str, password_hash: str, role: str) -> models.User:
    user = models.User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def has_accepted_connection(db: Session, student_id: int, mentor_id: int) -> bool:
    return db.query(models.Connection.id).filter(
        models.Connection.student_id == student_id,
        models.Connection.mentor_id == mentor_id,
        models.Connection.status == CONNECTION_ACCEPTED,
        models.Connection.is_active.is_(True),
    ).first() is not None
