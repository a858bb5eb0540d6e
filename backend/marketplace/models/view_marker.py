from sqlalchemy import Column, Text
from marketplace.database import Base


class ViewMarker(Base):
    __tablename__ = "view_markers"

    user_id = Column(Text, primary_key=True)
    section = Column(Text, primary_key=True)
    last_viewed_at = Column(Text, nullable=False)
