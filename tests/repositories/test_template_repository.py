"""テンプレートリポジトリのテスト"""

from pathlib import Path

import pytest

from powerrank.db import get_engine, get_session, init_db
from powerrank.models.weight_template import WeightTemplate
from powerrank.repositories.template_repository import (
    InMemoryTemplateRepository,
    SQLAlchemyTemplateRepository,
)
from powerrank.weights.weight_set import WeightSet


@pytest.fixture
def weight_set():
    return WeightSet(
        {"Approach": 0.6, "Scoring": 0.4},
        {
            "Approach": {"SG Approach": 0.7, "GIR": 0.3},
            "Scoring": {"Scoring Average": -0.5, "Birdies": 0.5},
        },
    )


@pytest.fixture
def engine(tmp_path: Path):
    engine = get_engine(str(tmp_path / "templates.db"))
    init_db(engine)
    yield engine
    engine.dispose()


class TestInMemoryTemplateRepository:
    """InMemoryTemplateRepositoryのテスト"""

    def test_put_and_get(self, weight_set):
        """保存と取得"""
        repository = InMemoryTemplateRepository()
        repository.put("POWER", weight_set)

        assert repository.get("POWER") == weight_set
        assert repository.names() == ["POWER"]

    def test_missing_returns_none(self):
        """存在しない場合はNone"""
        assert InMemoryTemplateRepository().get("missing") is None

    def test_empty_name_raises(self, weight_set):
        """名前が空だとエラー"""
        with pytest.raises(ValueError):
            InMemoryTemplateRepository().put("", weight_set)


class TestSQLAlchemyTemplateRepository:
    """SQLAlchemyTemplateRepositoryのテスト"""

    def test_put_and_get(self, engine, weight_set):
        """保存と取得"""
        with get_session(engine) as session:
            SQLAlchemyTemplateRepository(session).put("genesis-invitational", weight_set)

        with get_session(engine) as session:
            loaded = SQLAlchemyTemplateRepository(session).get("genesis-invitational")

        assert loaded == weight_set
        assert list(loaded.metric_weights["Scoring"]) == ["Scoring Average", "Birdies"]

    def test_same_name_overwrites(self, engine, weight_set):
        """同名は上書き"""
        updated = weight_set.with_group_weights({"Approach": 0.5, "Scoring": 0.5})

        with get_session(engine) as session:
            repository = SQLAlchemyTemplateRepository(session)
            repository.put("POWER", weight_set)
            repository.put("POWER", updated)

        with get_session(engine) as session:
            assert SQLAlchemyTemplateRepository(session).get("POWER") == updated
            assert session.query(WeightTemplate).count() == 1

    def test_missing_returns_none(self, engine):
        """存在しない場合はNone"""
        with get_session(engine) as session:
            assert SQLAlchemyTemplateRepository(session).get("missing") is None

    def test_names(self, engine, weight_set):
        """名前一覧"""
        with get_session(engine) as session:
            repository = SQLAlchemyTemplateRepository(session)
            repository.put("b", weight_set)
            repository.put("a", weight_set)
            assert repository.names() == ["a", "b"]

    def test_empty_name_raises(self, engine):
        """名前が空だとエラー"""
        with get_session(engine) as session:
            with pytest.raises(ValueError):
                SQLAlchemyTemplateRepository(session).get("  ")
