"""Tests for bfmeta.core.exceptions."""

from pathlib import Path

import pytest

from bfmeta.core.exceptions import (
    FATAL_ERRORS,
    PER_FILE_ERRORS,
    AnnotationParseError,
    BfmetaError,
    ChannelCountMismatchError,
    EmptyOutputError,
    NoXmlContentError,
    ReportParseError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    XmlParseError,
)


class TestExceptionHierarchy:
    def test_all_inherit_from_bfmeta_error(self):
        for exc_cls in (ToolNotFoundError, ToolExecutionError, ToolTimeoutError,
                        EmptyOutputError, NoXmlContentError, XmlParseError,
                        AnnotationParseError, ChannelCountMismatchError):
            assert issubclass(exc_cls, BfmetaError)

    def test_tool_errors(self):
        for exc_cls in (ToolNotFoundError, ToolExecutionError, EmptyOutputError):
            assert issubclass(exc_cls, ToolError)

    def test_timeout_is_execution_error(self):
        assert issubclass(ToolTimeoutError, ToolExecutionError)

    def test_xml_errors_are_parse_errors(self):
        assert issubclass(NoXmlContentError, ReportParseError)
        assert issubclass(XmlParseError, ReportParseError)

    def test_catch_all_with_base(self):
        with pytest.raises(BfmetaError):
            raise EmptyOutputError("a.czi")


class TestClassification:
    def test_fatal_errors(self):
        assert ToolNotFoundError in FATAL_ERRORS
        assert AnnotationParseError in FATAL_ERRORS

    def test_per_file_errors_catch_timeouts_and_xml(self):
        for exc in (ToolTimeoutError("a.czi", 5), NoXmlContentError(), XmlParseError("bad")):
            assert isinstance(exc, PER_FILE_ERRORS)

    def test_fatal_and_per_file_are_disjoint(self):
        assert not isinstance(ToolNotFoundError(), PER_FILE_ERRORS)
        assert not isinstance(AnnotationParseError("x.yaml", "bad"), PER_FILE_ERRORS)


class TestMessages:
    def test_tool_not_found_message(self):
        exc = ToolNotFoundError("showinf")
        assert "showinf" in str(exc)
        assert exc.tool == "showinf"

    def test_tool_not_found_default_message(self):
        assert "not found" in str(ToolNotFoundError())

    def test_execution_error_keeps_details(self):
        exc = ToolExecutionError("/data/a.czi", 3, "line 1\nUnknownFormatException: a.czi\n")
        assert exc.path == Path("/data/a.czi")
        assert exc.returncode == 3
        assert "exit code 3" in str(exc)
        assert "UnknownFormatException" in str(exc)

    def test_execution_error_without_stderr(self):
        exc = ToolExecutionError("a.czi", 1)
        assert str(exc).endswith("(exit code 1)")

    def test_timeout_message(self):
        exc = ToolTimeoutError("a.czi", 30.0)
        assert "timed out after 30s" in str(exc)
        assert exc.returncode is None
        assert exc.timeout == 30.0

    def test_empty_output_message(self):
        exc = EmptyOutputError("a.czi")
        assert "no output" in str(exc)
        assert exc.path == Path("a.czi")

    def test_no_xml_content_message(self):
        assert "a.czi" in str(NoXmlContentError("a.czi"))
        assert str(NoXmlContentError()) == "No XML content in report"

    def test_annotation_parse_error(self):
        exc = AnnotationParseError("dir/inputSampleInfo.yaml", "missing 'ELNID'")
        assert "inputSampleInfo.yaml" in str(exc)
        assert exc.reason == "missing 'ELNID'"

    def test_channel_count_mismatch(self):
        exc = ChannelCountMismatchError(3, 2)
        assert "3 channel(s)" in str(exc)
        assert "describes 2" in str(exc)
        assert exc.image_channels == 3
        assert exc.annotated_channels == 2
