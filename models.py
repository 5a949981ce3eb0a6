"""
Database models

規則引擎本身不碰資料庫；這裡只有事件日誌（EventLog），
讓外層可以把引擎發出的事件依序保存下來
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class EventLog(Base):
    __tablename__ = "event_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game = Column(String(32), nullable=False, index=True)
    event_type = Column(String(64), nullable=False, index=True)
    # 金額是 wei（大整數），JSON 內保存為數字
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
