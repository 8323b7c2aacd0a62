import uuid

from .errors import NotFoundError


def parse_uuid(value: str, label: str) -> str:
    """Normalize a path id; malformed ids are reported as missing rows."""
    try:
        return str(uuid.UUID(str(value).strip()))
    except ValueError:
        raise NotFoundError(f"{label} not found")
