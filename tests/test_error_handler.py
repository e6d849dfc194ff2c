"""
Test cases for error logging and error bodies
"""
import json
import logging

from unittest.mock import patch

from app.core import error_handler
from app.core.error_handler import error_body, log_error, setup_file_logging


class TestErrorLogging:
    def test_file_handler_is_attached_once(self, tmp_path):
        root = logging.getLogger()
        first = setup_file_logging(tmp_path)
        try:
            second = setup_file_logging(tmp_path)

            assert first is second
            assert root.handlers.count(first) == 1
            assert first.level == logging.ERROR
        finally:
            root.removeHandler(first)
            first.close()

    def test_log_error_appends_json_record(self, tmp_path):
        with patch.object(error_handler.settings, "error_logging", 1), \
                patch.object(error_handler.settings, "error_log_dir", str(tmp_path)):
            try:
                raise ValueError("broken pipe")
            except ValueError as e:
                log_error(e, extra_data={"document_id": "doc-1"})

        content = (tmp_path / "errors.log").read_text(encoding="utf-8")
        record = json.loads(content.split("\n" + "-" * 80)[0])
        assert record["error_type"] == "ValueError"
        assert record["error_message"] == "broken pipe"
        assert record["document_id"] == "doc-1"
        assert "Traceback" in record["traceback"]

    def test_disabled_logging_writes_nothing(self, tmp_path):
        with patch.object(error_handler.settings, "error_logging", 0), \
                patch.object(error_handler.settings, "error_log_dir", str(tmp_path)):
            log_error(RuntimeError("quiet"))

        assert not (tmp_path / "errors.log").exists()

    def test_error_body_shape(self):
        assert error_body("Document not found", 404) == {
            "error": {"message": "Document not found", "status_code": 404}
        }
        assert error_body("Validation error", 422, details=[]) == {
            "error": {"message": "Validation error", "status_code": 422, "details": []}
        }
