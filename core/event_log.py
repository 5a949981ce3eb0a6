"""
Event Log：記錄引擎發出的所有事件

引擎只負責「產生」事件，交給注入的 EventSink：
- InMemoryEventSink：預設，測試與本機使用
- SqlEventSink：寫進 event_log 資料表（一批事件一個 transaction）
"""
import logging
import threading
from typing import Iterable, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from database import SessionLocal, init_db, transactional
from models import EventLog
from schemas import GameEvent

logger = logging.getLogger(__name__)


class EventSink:
    """事件接收者的介面"""

    def publish(self, events: Iterable[GameEvent]) -> None:
        raise NotImplementedError


class InMemoryEventSink(EventSink):
    """把事件依序存在 list 裡"""

    def __init__(self):
        self._events: List[GameEvent] = []
        self._lock = threading.Lock()

    def publish(self, events: Iterable[GameEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    @property
    def events(self) -> List[GameEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: str) -> List[GameEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


@transactional
def record_events(db: Session, events: Iterable[GameEvent]) -> int:
    """
    把一批事件寫進 event_log

    參數：
        db: SQLAlchemy Session
        events: 事件列表（保持順序）

    返回：
        寫入的筆數
    """
    count = 0
    for event in events:
        db.add(EventLog(game=event.game, event_type=event.event_type, data=event.payload()))
        count += 1
    return count


class SqlEventSink(EventSink):
    """
    寫進資料庫的 EventSink

    注意：
        - 事件在引擎的鎖內發布，所以同一個像素 / 回合的事件順序和狀態變更一致
        - 寫入失敗會往上拋（transactional 會 rollback），不會吞掉
        - 建構時會建立 event_log 資料表（init_db），空資料庫也能直接使用

    參數：
        bind: 要寫入的 engine（預設為設定檔的 engine 和 SessionLocal）
    """

    def __init__(self, bind: Optional[Engine] = None):
        if bind is None:
            self.session_factory = SessionLocal
        else:
            self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=bind)
        init_db(bind)

    def publish(self, events: Iterable[GameEvent]) -> None:
        events = list(events)
        if not events:
            return
        db = self.session_factory()
        try:
            count = record_events(db, events)
            logger.debug(f"Recorded {count} events")
        finally:
            db.close()

    def load(self, game: str = None, event_type: str = None) -> List[EventLog]:
        """依寫入順序讀回事件"""
        db = self.session_factory()
        try:
            query = db.query(EventLog)
            if game:
                query = query.filter(EventLog.game == game)
            if event_type:
                query = query.filter(EventLog.event_type == event_type)
            return query.order_by(EventLog.id).all()
        finally:
            db.close()
