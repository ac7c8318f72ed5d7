"""
Unit tests for CallSiteAnalyzer

Tests for call detection, invoked object qualifiers and argument
extraction from raw source text.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from core.exceptions import MalformedSourceError
from core.hierarchy_types import Position, Range
from services.call_site_analyzer import SELF_SENTINEL, CallSiteAnalyzer
from services.source_text import SourceDocument, find_class_name


CALLER_SOURCE = "\n".join([
    "def run(self):",
    "    self.repo.save(order, notify(user))",
    "    helper()",
    "    value = compute",
    "    self.process(",
    "        item)",
])


def name_range(line, start, end):
    return Range.from_coordinates(line, start, line, end)


@pytest.fixture
def document():
    return SourceDocument(CALLER_SOURCE)


@pytest.fixture
def analyzer():
    return CallSiteAnalyzer()


class TestIsFunctionCall:
    """Test detection of invocations"""

    def test_parenthesis_right_after_name(self, analyzer, document):
        """Should detect `helper()` as a call"""
        assert analyzer.is_function_call(document, name_range(2, 4, 10)) is True

    def test_plain_reference_is_not_a_call(self, analyzer, document):
        """Should not treat `value = compute` as a call"""
        assert analyzer.is_function_call(document, name_range(3, 12, 19)) is False

    def test_parenthesis_on_next_line(self, analyzer):
        """Should detect a call whose parenthesis is on the following line"""
        document = SourceDocument("result = build\n    (a, b)\n")
        assert analyzer.is_function_call(document, name_range(0, 9, 14)) is True

    def test_out_of_range_position(self, analyzer, document):
        """Should raise MalformedSourceError for a line outside the document"""
        with pytest.raises(MalformedSourceError):
            analyzer.is_function_call(document, name_range(99, 0, 3))


class TestFindInvokedObject:
    """Test qualifier extraction"""

    def test_self_attribute_qualifier(self, analyzer, document):
        """Should strip the self token from `self.repo`"""
        assert analyzer.find_invoked_object(document, name_range(1, 14, 18)) == "repo"

    def test_self_qualifier_maps_to_sentinel(self, analyzer, document):
        """Should map a bare self qualifier to the sentinel"""
        assert analyzer.find_invoked_object(document, name_range(4, 9, 16)) == SELF_SENTINEL

    def test_unqualified_name(self, analyzer, document):
        """Should return an empty qualifier for plain calls"""
        assert analyzer.find_invoked_object(document, name_range(2, 4, 10)) == ""

    def test_dotted_qualifier(self, analyzer):
        """Should keep dotted qualifiers of other objects"""
        document = SourceDocument("    a.b.c(x)")
        assert analyzer.find_invoked_object(document, name_range(0, 8, 9)) == "a.b"

    def test_custom_self_tokens(self):
        """Should honor configured self tokens"""
        analyzer = CallSiteAnalyzer(self_tokens=("this",))

        assert analyzer.normalize_qualifier("this") == SELF_SENTINEL
        assert analyzer.normalize_qualifier("this.store") == "store"
        assert analyzer.normalize_qualifier("self.store") == "self.store"

    def test_foreign_self_is_not_sentinel(self):
        """Should treat `self` as an ordinary object when it is not a token"""
        analyzer = CallSiteAnalyzer(self_tokens=("this",))
        document = SourceDocument("    self.save()")

        qualifier = analyzer.find_invoked_object(document, name_range(0, 9, 13))

        assert qualifier == "self"
        assert qualifier != SELF_SENTINEL


class TestCollectArguments:
    """Test argument extraction"""

    def test_nested_parentheses(self, analyzer, document):
        """Should collect up to the matching parenthesis"""
        text, arguments = analyzer.collect_arguments(document, name_range(1, 14, 18))

        assert text == "order, notify(user)"
        assert arguments == Range.from_coordinates(1, 18, 1, 39)

    def test_multi_line_arguments(self, analyzer, document):
        """Should collect arguments spanning lines"""
        text, arguments = analyzer.collect_arguments(document, name_range(4, 9, 16))

        assert text == "\n        item"
        assert arguments == Range.from_coordinates(4, 16, 5, 13)

    def test_unbalanced_parentheses(self, analyzer):
        """Should return everything up to the end of the document"""
        document = SourceDocument("call(a, (b")

        text, arguments = analyzer.collect_arguments(document, name_range(0, 0, 4))

        assert text == "a, (b"
        assert arguments == Range.from_coordinates(0, 4, 0, 10)

    def test_no_parenthesis(self, analyzer):
        """Should return no arguments when nothing is opened"""
        document = SourceDocument("value = compute")
        assert analyzer.collect_arguments(document, name_range(0, 8, 15)) == ("", None)


class TestAnalyze:
    """Test the combined analysis"""

    def test_call_with_arguments(self, analyzer, document):
        """Should describe a qualified call with arguments"""
        info = analyzer.analyze(document, name_range(1, 14, 18))

        assert info.is_function_call is True
        assert info.invoked_object_qualifier == "repo"
        assert info.argument_text == "order, notify(user)"
        assert info.argument_range == Range.from_coordinates(1, 18, 1, 39)

    def test_reference_without_call(self, analyzer, document):
        """Should report only that a reference is not a call"""
        info = analyzer.analyze(document, name_range(3, 12, 19))

        assert info.is_function_call is False
        assert info.invoked_object_qualifier == ""
        assert info.argument_range is None

    def test_signature_replaces_argument_text(self, analyzer, document):
        """Should take the text from the signature but keep the call site range"""
        signature = SourceDocument("def save(self, order, notify=True):\n    pass\n")

        info = analyzer.analyze(
            document,
            name_range(1, 14, 18),
            signature_document=signature,
            signature_range=name_range(0, 4, 8),
        )

        assert info.argument_text == "self, order, notify=True"
        assert info.argument_range == Range.from_coordinates(1, 18, 1, 39)

    def test_malformed_position_recovers(self, analyzer, document):
        """Should return an empty result instead of raising"""
        info = analyzer.analyze(document, name_range(99, 0, 3))

        assert info.is_function_call is False

    def test_malformed_start_keeps_partial_result(self, analyzer, document):
        """Should keep what was found when the qualifier cannot be read"""
        # End points right before the `(` of save, start is past the last line
        info = analyzer.analyze(document, Range.from_coordinates(99, 0, 1, 18))

        assert info.is_function_call is True
        assert info.invoked_object_qualifier == ""
        assert info.argument_range is None


class TestSourceDocument:
    """Test positions and the class name scan"""

    def test_offsets_round_trip(self):
        """Should convert between positions and offsets"""
        document = SourceDocument("ab\ncde\n")

        assert document.offset_at(Position(1, 2)) == 5
        assert document.position_at(5) == Position(1, 2)
        assert document.end_position == Position(2, 0)

    def test_get_text(self):
        """Should return the text covered by a range"""
        document = SourceDocument("ab\ncde\n")
        assert document.get_text(Range.from_coordinates(0, 1, 1, 2)) == "b\ncd"

    def test_find_class_name(self):
        """Should find the class enclosing a method"""
        document = SourceDocument("class Order(Base):\n    # note\n    def total(self):\n        pass\n")
        assert find_class_name(document, Position(2, 8)) == "Order"

    def test_module_level_function_has_no_class(self):
        """Should return None for module level functions"""
        document = SourceDocument("class A:\n    pass\n\ndef main():\n    pass\n")
        assert find_class_name(document, Position(3, 4)) is None

    def test_find_class_name_out_of_range(self):
        """Should return None for positions outside the document"""
        assert find_class_name(SourceDocument("x = 1"), Position(10, 0)) is None
