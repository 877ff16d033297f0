# app/models/base.py
from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import DeclarativeBase, declared_attr
import re
import uuid
import nanoid

SID_SIZE = 22
SID_RE = re.compile(r"^[A-Za-z0-9_-]{%d}$" % SID_SIZE)


class Base(DeclarativeBase):
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sid = Column(String(SID_SIZE), unique=True, nullable=False, index=True)

    @declared_attr.directive
    def __tablename__(cls):
        return cls.__name__.lower()

    @staticmethod
    def generate_sid():
        """Generates the short public id used in URLs"""
        return nanoid.generate(size=SID_SIZE)

    @staticmethod
    def is_valid_sid(value: str) -> bool:
        return bool(SID_RE.match(value or ""))
