from sqlalchemy.dialects import postgresql


def compile_sql(statement) -> str:
    """Render a statement as PostgreSQL SQL text (bound values stay as placeholders)."""
    return str(statement.compile(dialect=postgresql.dialect()))


class FakeCache:
    """In-memory stand-in for CacheService."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ttl=None):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def close(self):
        pass
