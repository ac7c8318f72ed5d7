"""
Diagram formatters: turn a SequenceModel into diagram markup.

Labels in the model use "\\n" as line break; each formatter translates it
to the break syntax of its markup dialect.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from core.settings import Settings
from services.sequence_model import TRUNCATION_NOTE, MessageKind, SequenceMessage, SequenceModel


class DiagramFormatter(ABC):
    """Base class of the markup dialects."""

    file_extension: str = "txt"
    line_break: str = "\n"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    @abstractmethod
    def format(self, model: SequenceModel) -> str:
        """Return the diagram markup for `model`."""
        pass

    def _text(self, text: str) -> str:
        return text.replace("\n", self.line_break)

    def _label(self, message: SequenceMessage) -> str:
        if message.kind is MessageKind.RETURN:
            label = self.settings.return_message_label
        elif message.kind is MessageKind.NOTE:
            label = message.label or TRUNCATION_NOTE
        else:
            label = message.label

        label = self._text(label)
        if self.settings.omit_sequence_numbers:
            return label
        return f"{message.sequence_number}. {label}"


class MermaidFormatter(DiagramFormatter):
    """Converts a SequenceModel to Mermaid sequence diagram syntax."""

    file_extension = "mmd"
    line_break = "<br>"

    ARROWS = {
        MessageKind.CALL: "->>+",
        MessageKind.RETURN: "-->>-",
    }

    def format(self, model: SequenceModel) -> str:
        lines = [
            f"%%{{init: {{'theme':'{self.settings.diagram_theme}'}}}}%%",
            "sequenceDiagram",
            f"    title {model.title}",
            "",
        ]

        for participant in model.participants.all():
            lines.append(f"    participant {participant.id} as {participant.alias(self.line_break)}")

        lines.append("")

        for message in model.messages:
            lines.append(self._message(message))

        return "\n".join(lines) + "\n"

    def _message(self, message: SequenceMessage) -> str:
        source = message.from_participant.id
        target = message.to_participant.id
        if message.kind is MessageKind.NOTE:
            return f"    Note over {target}: {self._label(message)}"
        return f"    {source} {self.ARROWS[message.kind]} {target}: {self._label(message)}"


class PlantUMLFormatter(DiagramFormatter):
    """Converts a SequenceModel to PlantUML sequence diagram syntax."""

    file_extension = "puml"
    line_break = "\\n"

    def format(self, model: SequenceModel) -> str:
        lines = [
            "@startuml",
            f"title {model.title}",
            "",
            "' -- Styling --",
            "skinparam sequenceArrowThickness 2",
            "skinparam participantPadding 20",
            "",
            "' -- Participants --",
        ]

        for participant in model.participants.all():
            lines.append(f'participant "{participant.alias(self.line_break)}" as {participant.id}')

        lines.append("")
        lines.append("' -- Sequence --")

        for message in model.messages:
            lines.extend(self._message(message))

        lines.append("")
        lines.append("@enduml")

        return "\n".join(lines) + "\n"

    def _message(self, message: SequenceMessage) -> List[str]:
        source = message.from_participant.id
        target = message.to_participant.id

        if message.kind is MessageKind.NOTE:
            return [f"note over {target} : {self._label(message)}"]
        if message.kind is MessageKind.RETURN:
            return [f"{source} --> {target} : {self._label(message)}", f"deactivate {source}"]
        return [f"{source} -> {target} : {self._label(message)}", f"activate {target}"]


_FORMATTERS: Dict[str, type] = {
    "mermaid": MermaidFormatter,
    "plantuml": PlantUMLFormatter,
}


def get_formatter(name: str, settings: Optional[Settings] = None) -> DiagramFormatter:
    """Formatter for a `diagram_format` setting value."""
    formatter_class = _FORMATTERS.get(name.lower())
    if formatter_class is None:
        available = ", ".join(_FORMATTERS)
        raise ValueError(f"Unknown diagram format: '{name}'. Available formats: {available}")
    return formatter_class(settings)
