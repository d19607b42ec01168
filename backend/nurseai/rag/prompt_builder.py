"""
Prompt assembly for the health assistant.

Handles:
- Grouping retrieved search hits or recent records into a context bundle
- Formatting each record kind into one readable line
- Conversation history formatting
- The single-text prompt sent to the completion provider
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Dict, Any, Optional

from nurseai.schemas.search import SearchResult
from nurseai.utils.enums import EntityType, MessageRole


# Entity kind -> ContextBundle field
BUNDLE_FIELDS = {
    EntityType.medications.value: "medications",
    EntityType.vital_measurements.value: "vitals",
    EntityType.caregiver_notes.value: "notes",
    EntityType.diet_logs.value: "diet",
    EntityType.exercise_logs.value: "exercise",
}


@dataclass
class ContextItem:
    """One formatted line of patient context, with its search hit when retrieved."""
    text: str
    source: Optional[SearchResult] = None


@dataclass
class ContextBundle:
    medications: List[ContextItem] = field(default_factory=list)
    vitals: List[ContextItem] = field(default_factory=list)
    notes: List[ContextItem] = field(default_factory=list)
    diet: List[ContextItem] = field(default_factory=list)
    exercise: List[ContextItem] = field(default_factory=list)

    @property
    def has_clinical_data(self) -> bool:
        return bool(self.medications or self.vitals or self.notes)

    @property
    def sources(self) -> List[Dict[str, Any]]:
        return [
            item.source.to_source()
            for name in BUNDLE_FIELDS.values()
            for item in getattr(self, name)
            if item.source is not None
        ]

    @classmethod
    def from_search_results(cls, results: List[SearchResult]) -> "ContextBundle":
        """Group hits by kind; kinds without a bundle field are dropped."""
        bundle = cls()
        for result in results:
            name = BUNDLE_FIELDS.get(result.entity_type)
            if name is None:
                continue
            getattr(bundle, name).append(
                ContextItem(text=_format_search_result(result), source=result)
            )
        return bundle

    @classmethod
    def from_records(cls, records: Dict[str, list]) -> "ContextBundle":
        """Bundle built from ORM rows keyed by entity kind (recency fallback)."""
        bundle = cls()
        for kind, rows in records.items():
            name = BUNDLE_FIELDS.get(kind)
            if name is None:
                continue
            formatter = _RECORD_FORMATTERS[kind]
            getattr(bundle, name).extend(ContextItem(text=formatter(row)) for row in rows)
        return bundle


def _format_date(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def format_vital(
    kind_code: Optional[str],
    value1=None,
    value2=None,
    value_text: Optional[str] = None,
    notes: Optional[str] = None,
    recorded_at=None
) -> str:
    line = kind_code or "Vital"
    if value1 is not None:
        line += f": {value1:g}" if isinstance(value1, float) else f": {value1}"
        if value2 is not None:
            line += f"/{value2:g}" if isinstance(value2, float) else f"/{value2}"
    elif value_text:
        line += f": {value_text}"
    if notes:
        line += f" ({notes})"
    when = _format_date(recorded_at)
    if when:
        line += f" - {when}"
    return line


def _with_prefix(prefix: Optional[str], text: str) -> str:
    return f"{prefix}: {text}" if prefix else text


def _format_search_result(result: SearchResult) -> str:
    meta = result.metadata or {}
    kind = result.entity_type

    if kind == EntityType.vital_measurements.value:
        return format_vital(
            meta.get("kind_code"),
            meta.get("value1"),
            meta.get("value2"),
            meta.get("value_text"),
            result.content,
            meta.get("recorded_at"),
        )
    if kind == EntityType.caregiver_notes.value:
        when = _format_date(meta.get("created_at"))
        return f"{result.content} ({when})" if when else result.content
    if kind == EntityType.diet_logs.value:
        line = _with_prefix(meta.get("meal_type"), result.content)
        if meta.get("calories"):
            line += f" [{meta['calories']:g} kcal]"
        return line
    if kind == EntityType.exercise_logs.value:
        line = _with_prefix(meta.get("exercise_type"), result.content)
        if meta.get("duration_minutes"):
            line += f" [{meta['duration_minutes']} min]"
        return line
    return result.content


def _format_medication(record) -> str:
    name = record.medication_name or "Medication"
    if record.dosage:
        name = f"{name} ({record.dosage})"
    return _with_prefix(name, record.embedding_text()) if record.embedding_text() else name


def _format_vital_record(record) -> str:
    return format_vital(
        record.kind_code,
        record.value1,
        record.value2,
        record.value_text,
        record.notes,
        record.recorded_at,
    )


def _format_note(record) -> str:
    when = _format_date(record.created_at)
    return f"{record.note_text} ({when})" if when else record.note_text


def _format_diet(record) -> str:
    text = "; ".join(p for p in (record.food_items, record.notes) if p) or "logged meal"
    line = _with_prefix(record.meal_type, text)
    if record.calories:
        line += f" [{record.calories:g} kcal]"
    return f"{line} - {_format_date(record.log_date)}"


def _format_exercise(record) -> str:
    text = "; ".join(p for p in (record.description, record.notes) if p) or "logged exercise"
    line = _with_prefix(record.exercise_type, text)
    if record.duration_minutes:
        line += f" [{record.duration_minutes} min]"
    return f"{line} - {_format_date(record.log_date)}"


_RECORD_FORMATTERS = {
    EntityType.medications.value: _format_medication,
    EntityType.vital_measurements.value: _format_vital_record,
    EntityType.caregiver_notes.value: _format_note,
    EntityType.diet_logs.value: _format_diet,
    EntityType.exercise_logs.value: _format_exercise,
}


class AssistantPromptBuilder:
    """Builds the single-text prompt for assistant replies."""

    SYSTEM_PROMPT = (
        "You are a helpful AI health assistant for Digital Nurse. "
        "Answer the user's questions based on their health data."
    )

    INSTRUCTIONS = """Instructions:
- Answer based on the provided health data above
- Be specific and reference actual values when available
- If the user asks about specific vitals (like blood pressure), look for those in the data above
- Be concise and helpful
- If you don't have enough information, say so clearly
- Always recommend consulting healthcare providers for medical advice
- Use a friendly, supportive tone"""

    SECTIONS = (
        ("medications", "Medications"),
        ("vitals", "Recent Vital Measurements"),
        ("notes", "Caregiver Notes"),
        ("diet", "Diet Logs"),
        ("exercise", "Exercise Logs"),
    )

    MAX_HISTORY_MESSAGES = 10

    def build_prompt(
        self,
        message: str,
        bundle: ContextBundle,
        history: Optional[list] = None
    ) -> str:
        parts = [self.SYSTEM_PROMPT, "", "Relevant Health Data:"]
        parts.append(self.format_context(bundle))

        history_text = self.format_history(history or [])
        if history_text:
            parts.append("")
            parts.append("Conversation so far:")
            parts.append(history_text)

        parts.append("")
        parts.append(self.INSTRUCTIONS)
        parts.append("")
        parts.append(f"User question: {message}")
        return "\n".join(parts)

    def format_context(self, bundle: ContextBundle) -> str:
        lines = []
        for name, heading in self.SECTIONS:
            items = getattr(bundle, name)
            if not items:
                continue
            lines.append(f"\n{heading}:")
            lines.extend(f"- {item.text}" for item in items)

        if not bundle.has_clinical_data:
            lines.append("\nNo recent health data available.")

        return "\n".join(lines)

    def format_history(self, messages: list) -> str:
        """Format the last messages as ``User:``/``Assistant:`` lines."""
        recent = messages[-self.MAX_HISTORY_MESSAGES:]

        lines = []
        for msg in recent:
            role = "Assistant" if msg.role == MessageRole.assistant else "User"
            lines.append(f"{role}: {msg.content}")
        return "\n".join(lines)
