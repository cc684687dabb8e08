"""
Модель иностранного работника
"""

from sqlalchemy import Column, Integer, String, DateTime
from domain.entities.base import Base, enum_column, utcnow
import enum


class Gender(str, enum.Enum):
    """Пол работника (для проверки квот по полу)"""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Worker(Base):
    """Работник. Движок квот читает только пол."""
    __tablename__ = "workers"

    id = Column(Integer, primary_key=True, index=True)
    english_name = Column(String(255), nullable=False, index=True)
    chinese_name = Column(String(255), nullable=True)
    nationality = Column(String(8), nullable=True)  # PH, ID, VN, TH, OTHER
    gender = Column(enum_column(Gender, length=16), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        gender = self.gender.value if self.gender else None
        return f"<Worker(id={self.id}, english_name='{self.english_name}', gender={gender})>"
