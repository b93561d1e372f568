from typing import Optional
from sqlalchemy.orm import Session
from dropship.models.settings import PlatformSetting


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    """Get a platform setting value by key"""
    setting = db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
    return setting.value if setting else default


def update_setting(db: Session, key: str, value: str) -> None:
    """Update or create a platform setting"""
    setting = db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
    if setting:
        setting.value = value
    else:
        db.add(PlatformSetting(key=key, value=value))
    db.commit()
