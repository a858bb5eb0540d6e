from sqlalchemy import Column, Text
from marketplace.database import Base


class SavedJob(Base):
    __tablename__ = "saved_jobs"

    id = Column(Text, primary_key=True)
    creator_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)


class SavedCreator(Base):
    __tablename__ = "saved_creators"

    id = Column(Text, primary_key=True)
    business_id = Column(Text, nullable=False)
    creator_id = Column(Text, nullable=False)
    saved_at = Column(Text, nullable=False)
