from datetime import datetime
from types import SimpleNamespace

from sqlalchemy.dialects import postgresql

from nurseai.repositories.insights import InsightRepository


class RecordingSession:
    """Async session stand-in that keeps every executed statement."""

    def __init__(self, rowcount=0):
        self.rowcount = rowcount
        self.statements = []
        self.transactions = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def begin(self):
        self.transactions += 1
        return self

    async def execute(self, stmt):
        self.statements.append(stmt)
        return SimpleNamespace(rowcount=self.rowcount)


async def test_delete_expired_only_targets_rows_with_a_past_expiry():
    session = RecordingSession(rowcount=4)
    repository = InsightRepository(session_factory=lambda: session)
    now = datetime(2026, 3, 1, 2, 0)

    deleted = await repository.delete_expired(now)

    assert deleted == 4
    assert session.transactions == 1
    compiled = session.statements[0].compile(dialect=postgresql.dialect())
    sql = str(compiled).lower()
    assert sql.startswith("delete from ai_insights")
    assert "ai_insights.expires_at is not null and ai_insights.expires_at <" in sql
    assert now in compiled.params.values()
