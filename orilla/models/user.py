from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, String

from orilla.database import Base


class User(Base):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("role in ('super_admin','admin','user')", name="ck_users_role_valid"),
    )

    id = Column(String, primary_key=True, index=True)
    handle = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
