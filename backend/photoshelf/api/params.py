from uuid import UUID

from photoshelf.core.errors import ValidationError


def parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {label}") from exc
