from sqlalchemy import Column, ForeignKey, Text
from marketplace.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    token_hash = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
