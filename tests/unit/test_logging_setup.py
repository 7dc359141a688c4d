import json
import logging
import sys
from uuid import UUID

import pytest

from forms_backend.logging_setup import JsonFormatter


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="forms_backend.submissions",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="submission accepted",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
def test_json_formatter_emits_structured_fields() -> None:
    form_id = UUID("00000000-0000-4000-8000-000000000001")
    payload = json.loads(JsonFormatter().format(_record(form_id=form_id, answers_count=2, unrelated="x")))

    assert payload["message"] == "submission accepted"
    assert payload["level"] == "INFO"
    assert payload["form_id"] == str(form_id)
    assert payload["answers_count"] == 2
    assert "unrelated" not in payload


@pytest.mark.unit
def test_json_formatter_includes_exception_text() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exc_info"]
