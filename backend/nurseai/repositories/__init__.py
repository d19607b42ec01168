"""
Persistence collaborators.

Each repository opens short-lived sessions from an ``async_sessionmaker`` so
that concurrent callers (search fan-out, analysis branches, scheduler workers)
never share one ``AsyncSession``.
"""

from nurseai.repositories.records import RecordRepository
from nurseai.repositories.conversations import ConversationRepository
from nurseai.repositories.insights import InsightRepository
from nurseai.repositories.app_config import AppConfigRepository

__all__ = [
    "RecordRepository",
    "ConversationRepository",
    "InsightRepository",
    "AppConfigRepository",
]
