"""
Unit tests for diagram formatters

Tests for Mermaid and PlantUML rendering of a SequenceModel and for the
model's own naming helpers.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from core.hierarchy_types import CallHierarchyItem, Range, SymbolKind
from core.settings import Settings
from services.diagram_formatters import MermaidFormatter, PlantUMLFormatter, get_formatter
from services.participant_registry import ParticipantKey, ParticipantRegistry
from services.sequence_model import (
    MessageKind,
    SequenceMessage,
    SequenceModel,
    format_sequence_number,
    sequence_sort_key,
)


ENTRY = CallHierarchyItem(
    name="place",
    kind=SymbolKind.METHOD,
    uri="/proj/services/order.py",
    range=Range.from_coordinates(10, 4, 20, 0),
    selection_range=Range.from_coordinates(10, 8, 10, 13),
)


@pytest.fixture
def model():
    registry = ParticipantRegistry()
    service = registry.register(ParticipantKey("services/order.py", "OrderService", "place"))
    repo = registry.register(ParticipantKey("services/repo.py", "Repository", "repo"))
    registry.finalize()

    messages = (
        SequenceMessage(service, repo, "save(order,\nexpress=True)", "1", MessageKind.CALL),
        SequenceMessage(repo, repo, "further calls omitted - max depth reached", "1", MessageKind.NOTE),
        SequenceMessage(repo, service, "return value", "1", MessageKind.RETURN),
    )
    return SequenceModel(
        entry_point=ENTRY,
        participants=registry,
        messages=messages,
        entry_class="OrderService",
        workspace_root="/proj",
    )


def settings(**overrides):
    values = dict(omit_sequence_numbers=False, return_message_label="return value", diagram_theme="forest")
    values.update(overrides)
    return Settings(**values)


class TestMermaidFormatter:
    """Test Mermaid output"""

    def test_full_diagram(self, model):
        """Should render header, participants and messages"""
        result = MermaidFormatter(settings()).format(model)

        assert result == "\n".join([
            "%%{init: {'theme':'forest'}}%%",
            "sequenceDiagram",
            "    title Sequence diagram of OrderService.place() of services/order.py",
            "",
            "    participant p1 as order.py/OrderService<br>:place",
            "    participant p2 as repo.py/Repository<br>:repo",
            "",
            "    p1 ->>+ p2: 1. save(order,<br>express=True)",
            "    Note over p2: 1. further calls omitted - max depth reached",
            "    p2 -->>- p1: 1. return value",
        ]) + "\n"

    def test_omit_sequence_numbers(self, model):
        """Should drop the number prefixes"""
        result = MermaidFormatter(settings(omit_sequence_numbers=True)).format(model)

        assert "    p1 ->>+ p2: save(order,<br>express=True)" in result
        assert "    p2 -->>- p1: return value" in result

    def test_custom_return_label(self, model):
        """Should use the configured return label"""
        result = MermaidFormatter(settings(return_message_label="done")).format(model)
        assert "    p2 -->>- p1: 1. done" in result

    def test_theme(self, model):
        """Should put the configured theme into the init line"""
        result = MermaidFormatter(settings(diagram_theme="dark")).format(model)
        assert result.startswith("%%{init: {'theme':'dark'}}%%")


class TestPlantUMLFormatter:
    """Test PlantUML output"""

    def test_structure(self, model):
        """Should wrap the diagram in @startuml/@enduml"""
        result = PlantUMLFormatter(settings()).format(model)
        lines = result.splitlines()

        assert lines[0] == "@startuml"
        assert lines[-1] == "@enduml"
        assert "title Sequence diagram of OrderService.place() of services/order.py" in lines

    def test_participants_and_messages(self, model):
        """Should declare participants and activate callees"""
        result = PlantUMLFormatter(settings()).format(model)

        assert 'participant "order.py/OrderService\\n:place" as p1' in result
        assert "p1 -> p2 : 1. save(order,\\nexpress=True)\nactivate p2" in result
        assert "note over p2 : 1. further calls omitted - max depth reached" in result
        assert "p2 --> p1 : 1. return value\ndeactivate p2" in result


class TestGetFormatter:
    """Test formatter lookup"""

    def test_known_formats(self):
        assert isinstance(get_formatter("mermaid"), MermaidFormatter)
        assert isinstance(get_formatter("PlantUML"), PlantUMLFormatter)

    def test_unknown_format(self):
        """Should raise ValueError listing the available formats"""
        with pytest.raises(ValueError) as exc_info:
            get_formatter("graphviz")

        assert "mermaid" in str(exc_info.value)


class TestSequenceModel:
    """Test model helpers"""

    def test_serialize_defaults_to_mermaid(self, model):
        assert model.serialize().splitlines()[1] == "sequenceDiagram"

    def test_suggested_file_name(self, model):
        """Should combine relative path, class and function"""
        assert model.suggested_file_name() == "services_order.py-OrderService.place.mmd"
        assert model.suggested_file_name("puml") == "services_order.py-OrderService.place.puml"

    def test_calls(self, model):
        assert len(model.calls()) == 1

    def test_frozen(self, model):
        """Should not allow messages to be replaced"""
        with pytest.raises(AttributeError):
            model.messages = ()

    def test_sequence_numbers(self):
        assert format_sequence_number("", 3) == "3"
        assert format_sequence_number("2.1", 4) == "2.1.4"
        assert sequence_sort_key("2.10") > sequence_sort_key("2.9")
