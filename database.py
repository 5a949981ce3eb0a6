from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from functools import wraps
import logging

from config import get_settings

logger = logging.getLogger(__name__)


def make_engine(database_url: str):
    # SQLite 需要特殊設定：connect_args={"check_same_thread": False}
    # 這允許多執行緒存取同一個 SQLite 連線（引擎會在不同 thread 發布事件）
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
        pool_pre_ping=True
    )


settings = get_settings()

engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None):
    """
    建立所有資料表（已存在的表不會重建）

    參數：
        bind: 要建表的 engine（預設為設定檔的 engine）
    """
    # 匯入 models 讓 EventLog 註冊到 Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind if bind is not None else engine)


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def record_events(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            db.add(EventLog(...))
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
