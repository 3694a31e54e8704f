"""ウェイトテンプレートリポジトリ"""

import json
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from powerrank.models.weight_template import WeightTemplate
from powerrank.weights.weight_set import WeightSet


def _require_name(name: str) -> str:
    key = str(name or "").strip()
    if not key:
        raise ValueError("Template name is required")
    return key


class TemplateRepository(Protocol):
    """名前付きWeightSetの保存先"""

    def get(self, name: str) -> WeightSet | None:
        ...

    def put(self, name: str, weight_set: WeightSet) -> None:
        ...


class InMemoryTemplateRepository:
    """辞書に保持するテンプレートリポジトリ"""

    def __init__(self, templates: dict[str, WeightSet] | None = None):
        self._templates: dict[str, WeightSet] = dict(templates or {})

    def get(self, name: str) -> WeightSet | None:
        return self._templates.get(_require_name(name))

    def put(self, name: str, weight_set: WeightSet) -> None:
        self._templates[_require_name(name)] = weight_set

    def names(self) -> list[str]:
        return sorted(self._templates)


class SQLAlchemyTemplateRepository:
    """SQLAlchemyを使用したテンプレートリポジトリ

    WeightSetは to_dict() のJSONとして weight_templates テーブルに保存する。
    """

    def __init__(self, session: Session):
        """初期化

        Args:
            session: SQLAlchemyセッション（コミットは呼び出し側で行う）
        """
        self.session = session

    def get(self, name: str) -> WeightSet | None:
        """テンプレートを取得する

        Args:
            name: テンプレート名

        Returns:
            WeightSet、存在しない場合はNone

        Raises:
            ValueError: テンプレート名が空の場合
        """
        record = self.session.get(WeightTemplate, _require_name(name))
        if record is None:
            return None
        return WeightSet.from_template(json.loads(record.payload))

    def put(self, name: str, weight_set: WeightSet) -> None:
        """テンプレートを保存する（同名は上書き）

        Raises:
            ValueError: テンプレート名が空の場合
        """
        key = _require_name(name)
        payload = json.dumps(weight_set.to_dict(), ensure_ascii=False)

        record = self.session.get(WeightTemplate, key)
        if record is None:
            self.session.add(WeightTemplate(name=key, payload=payload))
        else:
            record.payload = payload
            record.updated_at = datetime.utcnow()
        self.session.flush()

    def names(self) -> list[str]:
        return [
            name
            for (name,) in self.session.query(WeightTemplate.name).order_by(
                WeightTemplate.name
            )
        ]
