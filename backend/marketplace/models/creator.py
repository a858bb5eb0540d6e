from sqlalchemy import JSON, Column, Float, Integer, Text
from marketplace.database import Base


class Creator(Base):
    __tablename__ = "creators"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, unique=True)
    name = Column(Text, nullable=False)
    email = Column(Text)
    bio = Column(Text)
    location = Column(Text)
    categories = Column(JSON, default=list)
    status = Column(Text, nullable=False, default="pending")
    average_rating = Column(Float)
    total_reviews = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False)
