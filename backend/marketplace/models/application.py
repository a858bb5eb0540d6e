from sqlalchemy import Column, Float, Text
from marketplace.database import Base


class Application(Base):
    __tablename__ = "job_applications"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, nullable=False)
    creator_id = Column(Text, nullable=False)
    cover_letter = Column(Text, nullable=False)
    proposed_price = Column(Float, nullable=False)
    estimated_duration = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
