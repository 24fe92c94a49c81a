"""Unit tests for autowebkit.engine.document — reading values from fetched HTML."""

from __future__ import annotations

import logging

from autowebkit.engine.document import HTMLDocument

FORM = """
<form name="login">
  <input type="text" id="user" value="alice">
  <input type="hidden" name="token" value="abc123">
  <input type="text" id="empty">
  <p class="note">  Remember me  </p>
</form>
"""


class TestValueForElement:
    def test_value_by_id(self):
        assert HTMLDocument(FORM).value_for_element("#user") == "alice"

    def test_value_by_attribute_selector(self):
        assert HTMLDocument(FORM).value_for_element("input[name='token']") == "abc123"

    def test_element_without_value(self):
        assert HTMLDocument(FORM).value_for_element("#empty") is None

    def test_missing_element(self):
        assert HTMLDocument(FORM).value_for_element("#nope") is None


class TestTextForElement:
    def test_text_is_stripped(self):
        assert HTMLDocument(FORM).text_for_element("p.note") == "Remember me"

    def test_missing_element(self):
        assert HTMLDocument(FORM).text_for_element("h1") is None


def test_invalid_selector_logs_and_returns_none(caplog):
    with caplog.at_level(logging.WARNING, logger="autowebkit.engine.document"):
        assert HTMLDocument(FORM).value_for_element("input[[") is None
    assert any("Invalid selector" in r.getMessage() for r in caplog.records)
