from datetime import datetime, timezone
from typing import Optional, Dict, Any


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Supabase timestamp into an aware datetime (UTC when naive)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseModel:
    # Columns of the backing table, in order
    FIELDS: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseModel":
        if not data:
            return None

        instance = cls()
        for key, value in data.items():
            if key not in cls.FIELDS:
                continue
            # Handle datetime conversion
            if key.endswith("_at"):
                value = parse_timestamp(value)
            setattr(instance, key, value)

        return instance

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for attr_name in self.FIELDS:
            attr_value = getattr(self, attr_name, None)

            # Convert datetime to ISO string
            if isinstance(attr_value, datetime):
                attr_value = attr_value.isoformat()

            result[attr_name] = attr_value

        return result

    def copy_with(self, **changes) -> "BaseModel":
        """Return a copy of this record with some columns replaced."""
        clone = type(self)()
        for attr_name in self.FIELDS:
            setattr(clone, attr_name, getattr(self, attr_name, None))
        for key, value in changes.items():
            if key not in self.FIELDS:
                raise AttributeError(f"{type(self).__name__} has no column {key!r}")
            setattr(clone, key, value)
        return clone

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return all(getattr(self, f, None) == getattr(other, f, None) for f in self.FIELDS)

    def __hash__(self):
        return hash((type(self).__name__, getattr(self, "id", None)))

    def __repr__(self):
        return f"{type(self).__name__}(id={getattr(self, 'id', None)!r})"
