from sqlalchemy import Column, Text
from marketplace.database import Base


class Message(Base):
    __tablename__ = "job_messages"

    id = Column(Text, primary_key=True)
    application_id = Column(Text, nullable=False)
    sender_type = Column(Text, nullable=False)
    sender_id = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    read_at = Column(Text)
    created_at = Column(Text, nullable=False)
