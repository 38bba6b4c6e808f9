import enum

from sqlalchemy import Enum


def enum_column(enum_cls: type[enum.Enum], length: int = 30) -> Enum:
    """Store an enum by its value in a plain VARCHAR (no native DB enum to migrate)."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
