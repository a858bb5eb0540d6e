from sqlalchemy import Column, Text
from marketplace.database import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, unique=True)
    company_name = Column(Text, nullable=False)
    email = Column(Text)
    industry = Column(Text)
    website = Column(Text)
    subscription_status = Column(Text, nullable=False, default="none")
    subscription_type = Column(Text)
    expires_at = Column(Text)
    stripe_customer_id = Column(Text)
    stripe_subscription_id = Column(Text)
    created_at = Column(Text, nullable=False)
