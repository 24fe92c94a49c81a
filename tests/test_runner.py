"""Unit tests for autowebkit.engine.runner with Playwright mocked out."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from autowebkit.config import AutoWebkitConfig
from autowebkit.engine.runner import RecordingObserver, ScriptRunner
from autowebkit.engine.script import AutomationScript
from autowebkit.engine.steps import IfPresent, PrintMessage


@pytest.fixture
def playwright(monkeypatch) -> MagicMock:
    pw = MagicMock()
    factory = MagicMock()
    factory.return_value.start.return_value = pw
    monkeypatch.setattr("playwright.sync_api.sync_playwright", factory)
    return pw


@pytest.fixture
def page(playwright) -> MagicMock:
    return playwright.chromium.launch.return_value.new_context.return_value.new_page.return_value


class TestRecordingObserver:
    def test_records_each_completed_step(self):
        seen = []
        observer = RecordingObserver(on_step_complete=seen.append)
        step = PrintMessage(message="hi")

        observer.will_begin_executing(AutomationScript([step]))
        observer.will_execute_step(step)
        observer.did_complete_step(step)
        observer.did_finish_executing(AutomationScript([step]))

        assert observer.began == observer.finished == 1
        assert [r.index for r in observer.records] == [0]
        assert seen == observer.records
        assert observer.records[0].duration_seconds >= 0


class TestScriptRunner:
    def test_scheduler_requires_start(self):
        with pytest.raises(RuntimeError, match="start"):
            ScriptRunner(AutoWebkitConfig()).scheduler

    def test_start_launches_configured_browser(self, playwright):
        config = AutoWebkitConfig(headless=False, viewport=(800, 600))
        with ScriptRunner(config):
            pass
        playwright.chromium.launch.assert_called_once_with(headless=False)
        browser = playwright.chromium.launch.return_value
        browser.new_context.assert_called_once_with(viewport={"width": 800, "height": 600})
        browser.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_run_reports_steps_and_environment(self, playwright, page):
        page.evaluate.return_value = "<html><head></head><body></body></html>"
        messages = []
        config = AutoWebkitConfig(environment={"user": "alice", "lang": "en"})
        script = AutomationScript(
            [IfPresent(key="user", success=(PrintMessage(message="hello"),)), PrintMessage(message="bye")],
            name="greet",
        )

        with ScriptRunner(config, message_sink=messages.append) as runner:
            result = runner.run(script, environment={"lang": "fr"}, capture_html=True)

        assert result.finished is True
        assert result.script_name == "greet"
        assert result.step_count == 3
        assert [r.index for r in result.steps] == [0, 1, 2]
        assert result.environment == {"user": "alice", "lang": "fr"}
        assert result.html == "<html><head></head><body></body></html>"
        assert messages == ["hello", "bye"]

    def test_run_requires_start(self):
        with pytest.raises(RuntimeError, match="start"):
            ScriptRunner(AutoWebkitConfig()).run(AutomationScript([]))

    def test_fetch_html_requires_start(self):
        with pytest.raises(RuntimeError, match="start"):
            ScriptRunner(AutoWebkitConfig()).fetch_html()

    def test_stop_is_idempotent(self, playwright):
        runner = ScriptRunner(AutoWebkitConfig())
        runner.start()
        runner.stop()
        runner.stop()
        playwright.stop.assert_called_once()
