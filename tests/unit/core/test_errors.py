# tests/unit/core/test_errors.py - v1
"""Tests for core/errors.py - error kinds and the serializable error tag."""

from __future__ import annotations

from fileorganizer.core.errors import (
    DuplicatePageAssignment,
    ErrorInfo,
    ErrorKind,
    InvalidWindowConfig,
    MissingConfiguration,
    OracleCallError,
    OracleContractError,
    TranscodeTimeout,
    UnknownGroupError,
)


class TestErrorKinds:
    def test_config_errors(self):
        assert InvalidWindowConfig("x").kind is ErrorKind.CONFIG
        assert MissingConfiguration("x").kind is ErrorKind.CONFIG

    def test_invariant_errors(self):
        assert DuplicatePageAssignment(3, ["A", "B"]).kind is ErrorKind.INVARIANT
        assert UnknownGroupError("x").kind is ErrorKind.INVARIANT

    def test_oracle_errors(self):
        assert OracleContractError("x").kind is ErrorKind.ORACLE
        assert OracleCallError("x").retryable is True
        assert OracleContractError("x").retryable is False

    def test_transcode_timeout(self):
        exc = TranscodeTimeout("src_1", "scan.pdf", 120.0)
        assert exc.kind is ErrorKind.TIMEOUT
        assert exc.retryable is True
        assert "after 120s" in str(exc)
        assert "scan.pdf" in str(exc)


class TestDuplicatePageAssignment:
    def test_message_lists_groups(self):
        exc = DuplicatePageAssignment(7, ["Acme", "Globex"])
        assert exc.page_number == 7
        assert exc.groups == ["Acme", "Globex"]
        assert "Page 7" in str(exc)
        assert "'Acme'" in str(exc) and "'Globex'" in str(exc)


class TestErrorInfo:
    def test_from_exception(self):
        info = ErrorInfo.from_exception(TranscodeTimeout("s", "f.pdf", 5))
        assert info.kind is ErrorKind.TIMEOUT
        assert info.error_type == "TranscodeTimeout"
        assert info.retryable is True

    def test_json_roundtrip_keeps_kind(self):
        info = ErrorInfo.from_exception(OracleContractError("bad reply"))
        restored = ErrorInfo.model_validate_json(info.model_dump_json())
        assert restored == info
        assert restored.kind == "oracle"
