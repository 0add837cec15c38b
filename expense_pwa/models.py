# expense_pwa/models.py
# lightweight model classes (not DB-bound ORM)

USER_LEVELS = ("basic", "registered", "premium")
LEVEL_WEIGHT = {"basic": 0, "registered": 1, "premium": 2}


class AuthUser:
    def __init__(self, id, email, name="", level="registered", created_at=None):
        self.id = id
        self.email = email
        self.name = name
        self.level = level if level in USER_LEVELS else "registered"
        self.created_at = created_at

    @classmethod
    def from_row(cls, row):
        return cls(row["id"], row["email"], row["name"], row["level"], row["created_at"])

    @property
    def is_premium(self):
        return self.level == "premium"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "level": self.level,
            "created_at": self.created_at,
        }

    def __repr__(self):
        return f"AuthUser(id={self.id!r}, email={self.email!r}, level={self.level!r})"


class Feature:
    def __init__(self, id, name, required_level, is_enabled=False):
        if required_level not in ("registered", "premium"):
            raise ValueError(f"Unknown access level: {required_level}")
        self.id = id
        self.name = name
        self.required_level = required_level
        self.is_enabled = is_enabled

    def copy(self, **changes):
        values = self.to_dict()
        values.update(changes)
        return Feature(**values)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "required_level": self.required_level,
            "is_enabled": self.is_enabled,
        }

    def __eq__(self, other):
        return isinstance(other, Feature) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Feature(id={self.id!r}, required_level={self.required_level!r}, is_enabled={self.is_enabled!r})"
