"""Column types shared by the storefront models"""
import uuid
from decimal import Decimal

from sqlalchemy import TypeDecorator, String, Numeric


def generate_uuid() -> str:
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """UUID stored as VARCHAR(36) so the same schema runs on SQLite and PostgreSQL"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value


class Money(TypeDecorator):
    """NUMERIC(10, 2) that always hands back a Decimal (SQLite returns floats otherwise)"""
    impl = Numeric(10, 2)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return Decimal(str(value)).quantize(Decimal("0.01"))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return Decimal(str(value)).quantize(Decimal("0.01"))
