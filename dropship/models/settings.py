"""
Platform settings
Key-value store for runtime-editable configuration (min_payout_amount, chat_welcome_message, ...)
"""
from sqlalchemy import Column, String, Text, DateTime
import uuid
from datetime import datetime
from dropship.database import Base


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<PlatformSetting key={self.key}>"
