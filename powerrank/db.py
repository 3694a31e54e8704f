"""テンプレート保存用のデータベース接続

ウェイトテンプレートを保存するSQLiteデータベースへの接続とセッションを扱う。
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from powerrank.models.base import Base

MEMORY_DB = ":memory:"


def get_engine(db_path: str = MEMORY_DB, echo: bool = False) -> Engine:
    """テンプレートDBのエンジンを作る

    Args:
        db_path: SQLiteファイルのパス、":memory:"、または "sqlite:///..." 形式のURL
        echo: 発行SQLをログに出すか

    Returns:
        Engine
    """
    if "://" in db_path:
        return create_engine(db_path, echo=echo)

    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}", echo=echo)


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """ブロックを抜けるとコミットするセッション

    ブロック内で例外が起きた場合はロールバックして再送出する。

    Example:
        with get_session(engine) as session:
            SQLAlchemyTemplateRepository(session).put("POWER", weight_set)
    """
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """weight_templates テーブルを作成する（作成済みなら何もしない）"""
    Base.metadata.create_all(engine)
