from typing import List, Optional
from sqlalchemy import String, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from users_service.models.user import User


class UserRepository:
    """
    Keyed persistence over user records.

    Every write is its own single-record transaction: it commits on success
    and rolls the session back before re-raising on failure.
    """

    @staticmethod
    def find_by_id(user_id: int, db: Session) -> Optional[User]:
        return db.get(User, user_id)

    @staticmethod
    def find_by_username(username: str, db: Session) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def find_by_email(email: str, db: Session) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def exists_by_username(username: str, db: Session) -> bool:
        return db.query(User.id).filter(User.username == username).first() is not None

    @staticmethod
    def exists_by_email(email: str, db: Session) -> bool:
        return db.query(User.id).filter(User.email == email).first() is not None

    @staticmethod
    def exists_by_phone_number(phone_number: str, db: Session) -> bool:
        return db.query(User.id).filter(User.phone_number == phone_number).first() is not None

    @staticmethod
    def find_all(db: Session) -> List[User]:
        """All users in insertion (id) order"""
        return db.query(User).order_by(User.id).all()

    @staticmethod
    def find_by_filters(
        db: Session,
        name: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[User]:
        """
        Filter users, ANDing every filter that is not None.

        name is a case-insensitive substring match, so users without a name
        never match a name filter (not even an empty one). role and status
        are exact matches.
        """
        query = db.query(User)
        if name is not None:
            query = query.filter(func.lower(User.name, type_=String).contains(name.lower(), autoescape=True))
        if role is not None:
            query = query.filter(User.role == role)
        if status is not None:
            query = query.filter(User.status == status)
        return query.order_by(User.id).all()

    @staticmethod
    def count_all(db: Session) -> int:
        return db.query(func.count(User.id)).scalar() or 0

    @staticmethod
    def count_by_role(role: str, db: Session) -> int:
        return db.query(func.count(User.id)).filter(User.role == role).scalar() or 0

    @staticmethod
    def count_by_status(status: str, db: Session) -> int:
        return db.query(func.count(User.id)).filter(User.status == status).scalar() or 0

    @staticmethod
    def save(user: User, db: Session) -> User:
        """Insert or update by primary key and return the refreshed record"""
        try:
            db.add(user)
            db.commit()
        except IntegrityError:
            # Unique constraint caught a write that slipped past the existence checks
            db.rollback()
            raise
        # Refresh to load generated fields (id, defaults)
        db.refresh(user)
        return user

    @staticmethod
    def delete_by_id(user_id: int, db: Session) -> bool:
        """Hard delete. Returns False when there was nothing to delete"""
        user = db.get(User, user_id)
        if user is None:
            return False
        db.delete(user)
        db.commit()
        return True


user_repository = UserRepository()
