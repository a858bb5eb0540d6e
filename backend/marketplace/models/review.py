from sqlalchemy import Column, Integer, Text
from marketplace.database import Base


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Text, primary_key=True)
    business_id = Column(Text, nullable=False)
    creator_id = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    rejection_reason = Column(Text)
    reply = Column(Text)
    reply_date = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
