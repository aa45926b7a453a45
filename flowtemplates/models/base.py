"""
SQLAlchemy declarative base and the columns shared by every table.
"""

from sqlalchemy import TIMESTAMP, Column, Integer, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class BaseModel(Base):
    """Abstract model: integer primary key plus creation/modification timestamps"""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Bumped by the ORM on every UPDATE it issues
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"
