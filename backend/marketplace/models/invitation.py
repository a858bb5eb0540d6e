from sqlalchemy import Column, Text
from marketplace.database import Base


class Invitation(Base):
    __tablename__ = "job_invitations"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, nullable=False)
    business_id = Column(Text, nullable=False)
    creator_id = Column(Text, nullable=False)
    message = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(Text, nullable=False)
    responded_at = Column(Text)
