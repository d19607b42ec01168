import uuid
from datetime import datetime

import pytest

from nurseai.models.caregiver_note import CaregiverNote
from nurseai.models.medication import Medication
from nurseai.services.assistant_service import AssistantService
from nurseai.utils.enums import MessageRole
from nurseai.utils.exceptions import GenerationFailed, NotFound, ProviderUnavailable

from tests.fakes import (
    FakeChatClient,
    FakeConversationRepository,
    FakeRecordRepository,
    FakeSearchEngine,
    make_result,
)


USER = uuid.uuid4()
PATIENT = uuid.uuid4()


def make_service(results=None, search_error=None, chat=None, recent=None):
    conversations = FakeConversationRepository()
    records = FakeRecordRepository(recent=recent or {})
    search = FakeSearchEngine(results or [], error=search_error)
    chat = chat or FakeChatClient()
    service = AssistantService(
        search_engine=search,
        chat_client=chat,
        conversations=conversations,
        records=records,
    )
    return service, search, chat, conversations, records


async def test_first_message_creates_conversation_and_stores_exchange():
    hit = make_result("medications", 0.91, content="Lisinopril (10mg): take in the morning")
    service, search, chat, conversations, _ = make_service(results=[hit])

    response = await service.chat(USER, "When should I take lisinopril?", patient_id=PATIENT)

    conversation_id = uuid.UUID(response.conversation_id)
    assert search.calls[0]["owner_id"] == PATIENT
    assert search.calls[0]["limit"] == 5
    assert "Lisinopril (10mg): take in the morning" in chat.prompts[0]
    assert "When should I take lisinopril?" in chat.prompts[0]

    messages = conversations.messages[conversation_id]
    assert [m.role for m in messages] == [MessageRole.user, MessageRole.assistant]
    assert messages[1].extra_metadata == {"sources": response.sources}
    assert response.sources[0]["id"] == hit.id


async def test_generation_failure_persists_nothing():
    service, _, _, conversations, _ = make_service(chat=FakeChatClient(error=ProviderUnavailable("503")))

    with pytest.raises(GenerationFailed):
        await service.chat(USER, "hello", patient_id=PATIENT)
    assert conversations.conversations == {}


async def test_unconfigured_provider_fails_before_retrieval():
    service, search, _, conversations, _ = make_service(chat=FakeChatClient(configured=False))

    with pytest.raises(GenerationFailed):
        await service.chat(USER, "hello")
    assert search.calls == []
    assert conversations.conversations == {}


async def test_embedding_failure_fails_the_chat():
    service, _, chat, _, _ = make_service(search_error=ProviderUnavailable("embeddings down"))

    with pytest.raises(ProviderUnavailable):
        await service.chat(USER, "any news?", patient_id=PATIENT)
    assert chat.prompts == []


async def test_unknown_or_foreign_conversation_is_not_found():
    service, _, _, conversations, _ = make_service()
    foreign = conversations.seed(uuid.uuid4())

    with pytest.raises(NotFound):
        await service.chat(USER, "hi", conversation_id=uuid.uuid4())
    with pytest.raises(NotFound):
        await service.chat(USER, "hi", conversation_id=foreign)


async def test_history_is_included_and_conversation_reused():
    service, _, chat, conversations, _ = make_service(
        results=[make_result("caregiver_notes", 0.8, content="Slept poorly")]
    )
    conversation_id = conversations.seed(USER, PATIENT, history=[
        (MessageRole.user, "How was last night?"),
        (MessageRole.assistant, "The notes mention restlessness."),
    ])

    response = await service.chat(USER, "And today?", conversation_id=conversation_id)

    assert response.conversation_id == str(conversation_id)
    assert "User: How was last night?" in chat.prompts[0]
    assert "Assistant: The notes mention restlessness." in chat.prompts[0]
    assert len(conversations.messages[conversation_id]) == 4


async def test_missing_patient_targets_the_requesting_user():
    service, search, _, _, _ = make_service(results=[make_result("caregiver_notes", 0.9)])

    await service.chat(USER, "How am I doing?")

    assert search.calls[0]["owner_id"] == USER


async def test_empty_message_uses_recent_records():
    recent = {
        "medications": [Medication(medication_name="Metformin", dosage="500mg", notes="with dinner")],
        "caregiver_notes": [CaregiverNote(note_text="Walked to the garden", created_at=datetime(2026, 6, 2))],
    }
    service, search, chat, _, records = make_service(recent=recent)

    await service.chat(USER, "  ", patient_id=PATIENT)

    assert search.calls == []
    assert records.recent_calls == [PATIENT]
    assert "Metformin (500mg): with dinner" in chat.prompts[0]
    assert "Walked to the garden (2026-06-02)" in chat.prompts[0]


async def test_non_clinical_hits_fall_back_to_recent_records():
    recent = {"caregiver_notes": [CaregiverNote(note_text="Ate well today", created_at=None)]}
    service, _, chat, _, records = make_service(
        results=[make_result("diet_logs", 0.9, content="oatmeal"), make_result("document_chunks", 0.95)],
        recent=recent,
    )

    response = await service.chat(USER, "What did I eat?", patient_id=PATIENT)

    assert records.recent_calls == [PATIENT]
    assert "Ate well today" in chat.prompts[0]
    assert response.sources == []


async def test_unknown_kinds_are_dropped_from_context():
    service, _, chat, _, _ = make_service(results=[
        make_result("vital_measurements", 0.9, content="after stairs", kind_code="bp", value1=150.0, value2=90.0),
        make_result("document_chunks", 0.95, content="discharge summary text"),
    ])

    response = await service.chat(USER, "blood pressure?", patient_id=PATIENT)

    assert "bp: 150/90 (after stairs)" in chat.prompts[0]
    assert "discharge summary text" not in chat.prompts[0]
    assert [s["entity_type"] for s in response.sources] == ["vital_measurements"]


async def test_conversation_listing_is_scoped_to_the_user():
    service, _, _, conversations, _ = make_service()
    mine = conversations.seed(USER, PATIENT, history=[(MessageRole.user, "Hi")])
    conversations.seed(uuid.uuid4())

    listed = await service.get_conversations(USER)
    detail = await service.get_conversation(mine, USER)

    assert [c.id for c in listed] == [mine]
    assert detail["conversation"]["id"] == str(mine)
    assert [m["content"] for m in detail["messages"]] == ["Hi"]
    with pytest.raises(NotFound):
        await service.get_conversation(mine, uuid.uuid4())
