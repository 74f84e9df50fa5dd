"""Tests for the classification engine state machine."""

import threading
import time

import pytest
from conftest import RecordingControl, ScriptedProvider, rate_limit_error

from data_tagger.config import ProviderSettings, RunSettings, TaggerConfig
from data_tagger.errors import ConfigurationError, ProviderError
from data_tagger.pipeline import (
    AI_ERROR_COLUMN,
    AI_TAGS_COLUMN,
    QUOTA_ERROR_MESSAGE,
    ClassificationJob,
    JobState,
    RunControl,
    create_job,
    get_classification_stats,
    print_results_summary,
)
from data_tagger.providers import GoogleProvider, OpenRouterProvider
from data_tagger.taxonomy import Tag


def _rows(*comments):
    return [{"id": str(i), "comment": c} for i, c in enumerate(comments, 1)]


def _job(rows, tags, provider, control, settings, events=None):
    return ClassificationJob(
        rows,
        "comment",
        tags,
        provider,
        settings=settings,
        control=control,
        on_progress=events.append if events is not None else None,
    )


# =============================================================================
# Normal runs
# =============================================================================


class TestCompletedRun:
    def test_end_to_end(self, sample_rows, sample_tags, control, fast_settings):
        original = [dict(row) for row in sample_rows]
        provider = ScriptedProvider(["Speed", "shipping, Great Vibes"])

        result = _job(sample_rows, sample_tags, provider, control, fast_settings).run()

        assert result.state is JobState.COMPLETED
        assert result.message == "Processing complete!"
        assert not result.partial
        assert result.rows_processed == 3
        assert provider.calls == 2

        first, blank, last = result.rows
        assert first == {
            "id": "1",
            "comment": "Support answered in minutes",
            AI_TAGS_COLUMN: "Speed",
            "Service": 1,
            "Shipping": 0,
        }
        assert blank[AI_TAGS_COLUMN] == ""
        assert blank["Service"] == 0 and blank["Shipping"] == 0
        assert last[AI_TAGS_COLUMN] == "Shipping"
        assert last["Shipping"] == 1 and last["Service"] == 0
        assert all(AI_ERROR_COLUMN not in row for row in result.rows)
        assert sample_rows == original

    def test_prompt_contains_comment_and_tags(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider(["None"])
        _job(_rows("Box arrived crushed"), sample_tags, provider, control, fast_settings).run()

        prompt = provider.prompts[0]
        assert '"Box arrived crushed"' in prompt
        assert '"Service"' in prompt and '"Speed"' in prompt and '"Shipping"' in prompt

    def test_nested_and_parent_both_matched(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider(["Speed, Service"])
        result = _job(_rows("fast"), sample_tags, provider, control, fast_settings).run()
        assert result.rows[0][AI_TAGS_COLUMN] == "Speed, Service"
        assert result.rows[0]["Service"] == 1

    def test_blank_comments_skip_network(self, sample_tags, control, fast_settings):
        rows = _rows("", "   ", None) + [{"id": "4"}]
        provider = ScriptedProvider()

        result = _job(rows, sample_tags, provider, control, fast_settings).run()

        assert provider.calls == 0
        assert control.sleeps == []
        assert len(result.rows) == 4
        for row in result.rows:
            assert row[AI_TAGS_COLUMN] == ""
            assert row["Service"] == 0 and row["Shipping"] == 0

    def test_inter_row_delay_only_between_network_rows(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider()
        _job(_rows("a", "", "b", "c"), sample_tags, provider, control, fast_settings).run()
        # after "a" and "b"; none after the blank row or the final row
        assert control.sleeps == [0.5, 0.5]

    def test_empty_dataset(self, sample_tags, control, fast_settings):
        result = _job([], sample_tags, ScriptedProvider(), control, fast_settings).run()
        assert result.state is JobState.COMPLETED
        assert result.rows == []

    def test_run_only_once(self, sample_tags, control, fast_settings):
        job = _job(_rows("a"), sample_tags, ScriptedProvider(), control, fast_settings)
        job.run()
        with pytest.raises(RuntimeError):
            job.run()


# =============================================================================
# Errors and retries
# =============================================================================


class TestRetries:
    def test_rate_limit_then_success(self, sample_tags, control, fast_settings):
        events = []
        provider = ScriptedProvider([rate_limit_error(), rate_limit_error(), "Shipping"])

        result = _job(_rows("late"), sample_tags, provider, control, fast_settings, events).run()

        assert provider.calls == 3
        assert control.backoffs == [1.0, 2.0]
        assert sum(control.backoffs) >= 3
        assert result.state is JobState.COMPLETED
        assert result.rows[0][AI_TAGS_COLUMN] == "Shipping"
        assert AI_ERROR_COLUMN not in result.rows[0]

        statuses = [e.status_text for e in events]
        assert "Rate limited. Retrying row 1 in 1s..." in statuses
        assert "Rate limited. Retrying row 1 in 2s..." in statuses

    def test_quota_message_is_retried(self, sample_tags, control, fast_settings):
        quota = ProviderError("openai", 403, "You exceeded your current quota")
        provider = ScriptedProvider([quota, "None"])
        result = _job(_rows("x"), sample_tags, provider, control, fast_settings).run()
        assert provider.calls == 2
        assert result.state is JobState.COMPLETED

    def test_persistent_rate_limit_is_fatal(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider(["Service"] + [rate_limit_error() for _ in range(4)])
        rows = _rows("first", "second", "third")

        result = _job(rows, sample_tags, provider, control, fast_settings).run()

        assert provider.calls == 5
        assert control.backoffs == [1.0, 2.0, 4.0]
        assert result.state is JobState.FATAL
        assert result.message == "Processing stopped due to API error"
        assert "Processing stopped at row 2" in result.error
        assert result.error.startswith("API Error:")
        assert result.rows_processed == 1

        assert len(result.rows) == 3
        assert result.rows[0][AI_TAGS_COLUMN] == "Service"
        for row in result.rows[1:]:
            assert row[AI_ERROR_COLUMN] == QUOTA_ERROR_MESSAGE
            assert row[AI_TAGS_COLUMN] == ""
            assert row["Service"] == 0 and row["Shipping"] == 0
        assert [row["id"] for row in result.rows] == ["1", "2", "3"]

    def test_retry_budget_is_configurable(self, sample_tags, control):
        settings = RunSettings(inter_row_delay=0, max_retries=1, backoff_base=0.25)
        provider = ScriptedProvider([rate_limit_error(), rate_limit_error()])
        result = _job(_rows("x"), sample_tags, provider, control, settings).run()
        assert provider.calls == 2
        assert control.backoffs == [0.25]
        assert result.state is JobState.FATAL

    def test_other_provider_error_is_row_local(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider([ProviderError("openai", 500, "Internal error"), "Shipping"])

        result = _job(_rows("a", "b"), sample_tags, provider, control, fast_settings).run()

        assert provider.calls == 2
        assert control.backoffs == []
        assert result.state is JobState.COMPLETED
        assert result.rows[0][AI_ERROR_COLUMN] == "openai API error: 500 - Internal error"
        assert result.rows[0][AI_TAGS_COLUMN] == ""
        assert result.rows[0]["Service"] == 0
        assert result.rows[1][AI_TAGS_COLUMN] == "Shipping"
        assert result.error_count == 1

    def test_transport_error_is_row_local(self, sample_tags, control, fast_settings):
        timeout = ProviderError("google", None, "Request timed out after 60s")
        provider = ScriptedProvider([timeout, "None"])
        result = _job(_rows("a", "b"), sample_tags, provider, control, fast_settings).run()
        assert result.state is JobState.COMPLETED
        assert result.rows[0][AI_ERROR_COLUMN] == "google API error: Request timed out after 60s"

    def test_unexpected_exception_is_row_local(self, sample_tags, control, fast_settings):
        provider = ScriptedProvider([ValueError("boom"), "Service"])
        result = _job(_rows("a", "b"), sample_tags, provider, control, fast_settings).run()
        assert result.state is JobState.COMPLETED
        assert result.rows[0][AI_ERROR_COLUMN] == "boom"
        assert result.rows[1]["Service"] == 1


# =============================================================================
# Controls
# =============================================================================


class TestControls:
    def test_stop_after_in_flight_row(self, sample_tags, control, fast_settings):
        def stop_on_second_call(n, _prompt):
            if n == 2:
                control.request_stop()

        provider = ScriptedProvider(on_call=stop_on_second_call)
        job = _job(_rows("a", "b", "c", "d"), sample_tags, provider, control, fast_settings)

        result = job.run()

        assert provider.calls == 2
        assert result.state is JobState.STOPPED
        assert result.partial
        assert len(result.rows) == 2
        assert [row["id"] for row in result.rows] == ["1", "2"]
        assert "Processing stopped by user" in result.message
        assert "2 of 4" in result.message

    def test_stop_before_start(self, sample_tags, control, fast_settings):
        control.request_stop()
        provider = ScriptedProvider()
        result = _job(_rows("a", "b"), sample_tags, provider, control, fast_settings).run()
        assert provider.calls == 0
        assert result.state is JobState.STOPPED
        assert result.rows == []

    def test_stop_during_backoff_drops_row(self, sample_tags, control, fast_settings):
        def stop_on_first_call(n, _prompt):
            control.request_stop()

        provider = ScriptedProvider([rate_limit_error()], on_call=stop_on_first_call)
        result = _job(_rows("a", "b"), sample_tags, provider, control, fast_settings).run()

        assert provider.calls == 1
        assert control.backoffs == [1.0]
        assert result.state is JobState.STOPPED
        assert result.rows == []

    def test_pause_and_resume(self, sample_tags):
        control = RunControl(poll_interval=0.005)
        settings = RunSettings(inter_row_delay=0, poll_interval=0.005)
        events = []

        def pause_on_first_call(n, _prompt):
            if n == 1:
                control.request_pause()
                threading.Timer(0.05, control.request_resume).start()

        provider = ScriptedProvider(on_call=pause_on_first_call)
        job = _job(_rows("a", "b", "c"), sample_tags, provider, control, settings, events)

        result = job.run()

        assert result.state is JobState.COMPLETED
        assert provider.calls == 3
        assert len(result.rows) == 3

        paused = [e for e in events if e.state is JobState.PAUSED]
        assert len(paused) == 1
        assert paused[0].rows_done == 1
        states = [e.state for e in events]
        assert states.index(JobState.PAUSED) < len(states) - 1
        assert JobState.RUNNING in states[states.index(JobState.PAUSED):]

    def test_stop_while_paused(self, sample_tags):
        control = RunControl(poll_interval=0.005)
        settings = RunSettings(inter_row_delay=0, poll_interval=0.005)

        def pause_on_first_call(n, _prompt):
            control.request_pause()
            threading.Timer(0.05, control.request_stop).start()

        provider = ScriptedProvider(on_call=pause_on_first_call)
        result = _job(_rows("a", "b"), sample_tags, provider, control, settings).run()

        assert provider.calls == 1
        assert result.state is JobState.STOPPED
        assert len(result.rows) == 1

    def test_stop_interrupts_inter_row_delay(self, sample_tags):
        control = RunControl(poll_interval=0.01)
        settings = RunSettings(inter_row_delay=5, poll_interval=0.01)

        def stop_soon(n, _prompt):
            if n == 1:
                threading.Timer(0.05, control.request_stop).start()

        provider = ScriptedProvider(on_call=stop_soon)
        started = time.monotonic()
        result = _job(_rows("a", "b", "c"), sample_tags, provider, control, settings).run()

        assert time.monotonic() - started < 2
        assert result.state is JobState.STOPPED
        assert provider.calls == 1
        assert len(result.rows) == 1

    def test_job_level_controls_delegate(self, sample_tags, control, fast_settings):
        job = _job(_rows("a"), sample_tags, ScriptedProvider(), control, fast_settings)
        job.request_pause()
        assert control.pause_requested
        job.request_resume()
        assert not control.pause_requested
        job.request_stop()
        assert control.stop_requested

    def test_background_start(self, sample_tags, control, fast_settings):
        job = _job(_rows("a", "b"), sample_tags, ScriptedProvider(["Service"]), control,
                   fast_settings)
        thread = job.start()
        result = job.wait(timeout=5)

        assert not thread.is_alive()
        assert result is job.result
        assert result.state is JobState.COMPLETED
        with pytest.raises(RuntimeError):
            job.start()


# =============================================================================
# Progress
# =============================================================================


class TestProgress:
    def test_events_per_row_and_state(self, sample_rows, sample_tags, control, fast_settings):
        events = []
        _job(sample_rows, sample_tags, ScriptedProvider(), control, fast_settings, events).run()

        assert events[0].state is JobState.RUNNING
        assert events[0].rows_done == 0
        assert events[-1].state is JobState.COMPLETED
        assert events[-1].fraction == 1.0
        assert events[-1].status_text == "Processing complete!"

        done = [e.rows_done for e in events]
        assert done == sorted(done)
        for n in (1, 2, 3):
            assert n in done

    def test_callback_errors_do_not_stop_run(self, sample_tags, control, fast_settings):
        def broken(_event):
            raise RuntimeError("render failed")

        job = ClassificationJob(_rows("a"), "comment", sample_tags, ScriptedProvider(),
                                settings=fast_settings, control=control, on_progress=broken)
        assert job.run().state is JobState.COMPLETED


# =============================================================================
# Validation and factory
# =============================================================================


class TestValidation:
    def test_missing_column(self, sample_tags, control, fast_settings):
        with pytest.raises(ConfigurationError, match="Column 'text' not found"):
            ClassificationJob(_rows("a"), "text", sample_tags, ScriptedProvider(),
                              settings=fast_settings, control=control)

    def test_no_tags(self, control, fast_settings):
        with pytest.raises(ConfigurationError, match="At least one tag"):
            _job(_rows("a"), [Tag(name="  ")], ScriptedProvider(), control, fast_settings)

    def test_duplicate_names(self, control, fast_settings):
        tags = [Tag(name="Service", children=[Tag(name="speed")]), Tag(name="Speed")]
        with pytest.raises(ConfigurationError, match="Duplicates: speed"):
            _job(_rows("a"), tags, ScriptedProvider(), control, fast_settings)

    def test_tag_named_like_input_column(self, control, fast_settings):
        tags = [Tag(name="Comment"), Tag(name="Service")]
        with pytest.raises(ConfigurationError, match="Conflicts: Comment"):
            _job(_rows("a"), tags, ScriptedProvider(), control, fast_settings)

    @pytest.mark.parametrize("name", [AI_TAGS_COLUMN, AI_ERROR_COLUMN.lower()])
    def test_tag_named_like_output_column(self, name, control, fast_settings):
        with pytest.raises(ConfigurationError, match="must not match an input column"):
            _job(_rows("a"), [Tag(name=name)], ScriptedProvider(), control, fast_settings)

    def test_nested_tag_may_share_column_name(self, control, fast_settings):
        tags = [Tag(name="Service", children=[Tag(name="Comment")])]
        result = _job(_rows("a"), tags, ScriptedProvider(["Comment"]), control,
                      fast_settings).run()
        assert result.rows[0]["comment"] == "a"
        assert result.rows[0]["Service"] == 1

    def test_comma_in_tag_name(self, control, fast_settings):
        tags = [Tag(name="Service", children=[Tag(name="Price, Value")])]
        with pytest.raises(ConfigurationError, match="cannot contain commas"):
            _job(_rows("a"), tags, ScriptedProvider(), control, fast_settings)


class TestCreateJob:
    def test_with_provider_and_raw_tags(self, control):
        raw = [{"name": " Service ", "children": [{"name": "Speed"}]}, {"name": ""}]
        job = create_job(_rows("a"), "comment", raw, provider=ScriptedProvider(["Speed"]),
                         control=control)

        assert job.known_tag_names == ["Service", "Speed"]
        assert job.top_level_names == ["Service"]
        assert job.run().rows[0]["Service"] == 1

    def test_builds_provider_from_config(self):
        config = TaggerConfig(
            provider=ProviderSettings(provider="google", model="gemini-2.5-flash", api_key="k"),
            run=RunSettings(inter_row_delay=0, request_timeout=15),
        )
        job = create_job(_rows("a"), "comment", [{"name": "A", "children": []}], config=config)

        assert isinstance(job.provider, GoogleProvider)
        assert job.provider.timeout == 15
        assert job.settings.inter_row_delay == 0

    def test_openrouter_attribution(self):
        settings = ProviderSettings(provider="openrouter", model="google/gemini-2.5-flash",
                                    api_key="k", referer="https://example.org")
        job = create_job(_rows("a"), "comment", [Tag(name="A")],
                         config=TaggerConfig(provider=settings))
        assert isinstance(job.provider, OpenRouterProvider)
        assert job.provider.referer == "https://example.org"

    def test_target_column_from_config(self):
        config = TaggerConfig(target_column="comment")
        job = create_job(_rows("a"), None, [Tag(name="A")], config=config,
                         provider=ScriptedProvider())
        assert job.target_column == "comment"

    def test_missing_key(self):
        config = TaggerConfig(provider=ProviderSettings(provider="openai", model="gpt-4o-mini"))
        with pytest.raises(ConfigurationError, match="API key"):
            create_job(_rows("a"), "comment", [Tag(name="A")], config=config)

    def test_unknown_provider(self):
        config = TaggerConfig(provider=ProviderSettings(provider="acme", model="m", api_key="k"))
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            create_job(_rows("a"), "comment", [Tag(name="A")], config=config)


# =============================================================================
# Stats
# =============================================================================


def test_classification_stats_and_summary(sample_tags, control, fast_settings, capsys):
    provider = ScriptedProvider(["Speed", ProviderError("openai", 500, "oops"), "Shipping"])
    rows = _rows("a", "", "b", "c")
    result = _job(rows, sample_tags, provider, control, fast_settings).run()

    stats = get_classification_stats(result)
    assert stats["output_rows"] == 4
    assert stats["tagged_rows"] == 2
    assert stats["untagged_rows"] == 1
    assert stats["error_rows"] == 1
    assert stats["tag_distribution"] == {"Speed": 1, "Shipping": 1}

    print_results_summary(result)
    out = capsys.readouterr().out
    assert "CLASSIFICATION SUMMARY" in out
    assert "Row 3: openai API error: 500 - oops" in out
