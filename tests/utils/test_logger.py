from __future__ import annotations

import json
import logging

from webgen.utils.logger import DevelopmentFormatter, StructuredFormatter


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("webgen.handlers.generate", logging.INFO, __file__, 1, "Page ready", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_output_includes_image_counts():
    record = make_record(new_images=2, cache_hits=1, failed_images=0, request_id="abc")

    data = json.loads(StructuredFormatter().format(record))

    assert data["message"] == "Page ready"
    assert data["new_images"] == 2
    assert data["cache_hits"] == 1
    assert data["failed_images"] == 0
    assert data["request_id"] == "abc"


def test_development_output_includes_image_counts():
    record = make_record(new_images=2, cache_hits=1, failed_images=0)

    line = DevelopmentFormatter().format(record)

    assert "new_images=2" in line
    assert "cache_hits=1" in line
    assert "failed_images=0" in line
