from sqlalchemy import JSON, Column, Float, Text
from marketplace.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    business_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    platforms = Column(JSON, default=list)
    budget_type = Column(Text, nullable=False, default="fixed")
    budget_min = Column(Float)
    budget_max = Column(Float)
    duration = Column(Text)
    experience_level = Column(Text)
    application_deadline = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
