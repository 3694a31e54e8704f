"""WeightTemplateモデル定義"""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from powerrank.models.base import Base


class WeightTemplate(Base):
    """ウェイトテンプレートモデル

    WeightSetをJSON文字列として名前付きで保存する。

    Attributes:
        name: テンプレート名（主キー、例: "POWER", "genesis-invitational"）
        payload: WeightSetのJSON表現
        created_at: 作成日時
        updated_at: 更新日時
    """

    __tablename__ = "weight_templates"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<WeightTemplate(name={self.name!r})>"
