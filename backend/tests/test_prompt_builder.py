import uuid
from datetime import date, datetime

from nurseai.models.conversation import ConversationMessage
from nurseai.models.lifestyle import DietLog
from nurseai.rag.prompt_builder import AssistantPromptBuilder, ContextBundle, format_vital
from nurseai.utils.enums import MessageRole

from tests.fakes import make_result


def test_format_vital_variants():
    assert format_vital("bp", 120.0, 80.0) == "bp: 120/80"
    assert format_vital("hr", 72.5, notes="resting") == "hr: 72.5 (resting)"
    assert format_vital("mood", value_text="calm", recorded_at=datetime(2026, 5, 1, 9)) == "mood: calm - 2026-05-01"
    assert format_vital(None) == "Vital"


def test_bundle_groups_hits_and_keeps_sources_in_section_order():
    note = make_result("caregiver_notes", 0.8, content="Refused lunch", created_at="2026-05-02T12:00:00")
    med = make_result("medications", 0.9, content="after meals")

    bundle = ContextBundle.from_search_results([note, med])

    assert bundle.notes[0].text == "Refused lunch (2026-05-02)"
    assert [s["id"] for s in bundle.sources] == [med.id, note.id]


def test_lifestyle_only_bundle_has_no_clinical_data():
    bundle = ContextBundle.from_records({
        "diet_logs": [DietLog(meal_type="lunch", food_items="lentil soup", calories=320.0, log_date=date(2026, 5, 3))],
    })

    assert not bundle.has_clinical_data
    assert bundle.diet[0].text == "lunch: lentil soup [320 kcal] - 2026-05-03"


def test_prompt_layout():
    builder = AssistantPromptBuilder()
    bundle = ContextBundle.from_search_results([
        make_result("vital_measurements", 0.9, content="", kind_code="bp", value1=130.0, value2=85.0),
    ])
    history = [
        ConversationMessage(id=uuid.uuid4(), role=MessageRole.user, content="Hi"),
        ConversationMessage(id=uuid.uuid4(), role=MessageRole.assistant, content="Hello!"),
    ]

    prompt = builder.build_prompt("Is my blood pressure ok?", bundle, history)

    assert prompt.startswith(AssistantPromptBuilder.SYSTEM_PROMPT)
    assert "Recent Vital Measurements:\n- bp: 130/85" in prompt
    assert "Conversation so far:\nUser: Hi\nAssistant: Hello!" in prompt
    assert prompt.endswith("User question: Is my blood pressure ok?")
    assert "No recent health data available." not in prompt


def test_empty_context_is_announced():
    prompt = AssistantPromptBuilder().build_prompt("hello", ContextBundle())

    assert "No recent health data available." in prompt
    assert "Conversation so far:" not in prompt


def test_history_is_capped():
    messages = [
        ConversationMessage(id=uuid.uuid4(), role=MessageRole.user, content=f"m{i}")
        for i in range(15)
    ]

    text = AssistantPromptBuilder().format_history(messages)

    assert text.splitlines()[0] == "User: m5"
    assert len(text.splitlines()) == 10
