from sqlalchemy import Column, Text
from marketplace.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    event_id = Column(Text, primary_key=True)
    event_type = Column(Text, nullable=False)
    processed_at = Column(Text, nullable=False)
