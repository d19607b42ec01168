"""
Error taxonomy shared by the embedding, search, insight and chat services.

Batch jobs never raise for individual item failures; they report them through
``nurseai.services.batch_report.BatchReport`` instead.
"""


class NurseAIError(Exception):
    """Base class for errors raised by the core services."""


class InvalidInput(NurseAIError):
    """Rejected before any external call (empty text, bad date range, unknown kind)."""


class ProviderUnavailable(NurseAIError):
    """Embedding or completion provider unreachable, misconfigured or returned non-2xx."""


class NotFound(NurseAIError):
    """A conversation, document, insight or patient does not exist for the caller."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class GenerationFailed(NurseAIError):
    """The chat completion call failed; nothing was persisted."""
