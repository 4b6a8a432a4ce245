from types import SimpleNamespace

import pytest

from chunkscribe.internal_core.asr import TimelineStitcher, transcribe_samples
from chunkscribe.internal_core.asr import stitcher as stitcher_mod
from chunkscribe.internal_core.contracts import Segment
from chunkscribe.internal_core.errors import (
    ConfigurationError,
    EngineError,
    FormatError,
    RunTimeoutError,
)

from _helpers import FullWindowEngine, ScriptedEngine, engine_error, silent_buffer


def _spans(result):
    return [(s.start_cs, s.end_cs, s.text) for s in result.segments]


def test_two_window_scenario_with_nominal_advancement() -> None:
    engine = ScriptedEngine(
        [
            [Segment(start_cs=0, end_cs=1500, text="hello")],
            [Segment(start_cs=0, end_cs=1000, text="world")],
        ]
    )
    result = TimelineStitcher(engine, window_seconds=30, sample_rate=16000, policy="nominal").run(
        silent_buffer(2 * 480000)
    )

    assert _spans(result) == [(0, 1500, "hello"), (3000, 4000, "world")]
    assert [s.seq for s in result.segments] == [1, 2]
    assert [s.window_index for s in result.segments] == [0, 1]
    assert engine.calls == [480000, 480000]


def test_two_window_scenario_with_observed_advancement() -> None:
    engine = ScriptedEngine(
        [
            [Segment(start_cs=0, end_cs=1500, text="hello")],
            [Segment(start_cs=0, end_cs=1000, text="world")],
        ]
    )
    result = TimelineStitcher(engine, window_seconds=30, sample_rate=16000, policy="observed").run(
        silent_buffer(2 * 480000)
    )
    assert _spans(result) == [(0, 1500, "hello"), (1500, 2500, "world")]


@pytest.mark.parametrize("policy", ["nominal", "observed"])
def test_offsets_equal_sum_of_prior_true_durations_with_short_final_window(policy: str) -> None:
    # 2.5 windows of one second each: true durations 100, 100, 50 cs.
    engine = FullWindowEngine(sample_rate=16000)
    result = transcribe_samples(engine, silent_buffer(16000 * 2 + 8000), window_seconds=1, policy=policy)

    assert [(s.start_cs, s.end_cs) for s in result.segments] == [(0, 100), (100, 200), (200, 250)]
    assert [m.base_offset_cs for m in result.windows] == [0, 100, 200]
    assert result.windows[-1].next_offset_cs == 250


def test_policies_diverge_when_engine_ends_before_window_end() -> None:
    buffer = silent_buffer(16000 * 3)
    nominal = transcribe_samples(FullWindowEngine(16000, 0.6), buffer, window_seconds=1, policy="nominal")
    observed = transcribe_samples(FullWindowEngine(16000, 0.6), buffer, window_seconds=1, policy="observed")

    assert [s.start_cs for s in nominal.segments] == [0, 100, 200]
    assert [s.start_cs for s in observed.segments] == [0, 60, 120]


def test_observed_policy_falls_back_to_window_duration_on_empty_window() -> None:
    engine = ScriptedEngine(
        [
            [],
            [Segment(start_cs=10, end_cs=40, text="late")],
        ]
    )
    result = transcribe_samples(engine, silent_buffer(16000 * 2), window_seconds=1, policy="observed")
    assert _spans(result) == [(110, 140, "late")]
    assert [m.segments for m in result.windows] == [0, 1]


def test_global_starts_are_non_decreasing_across_windows() -> None:
    engine = ScriptedEngine(
        [
            [Segment(start_cs=0, end_cs=30, text="a"), Segment(start_cs=30, end_cs=30, text="b")],
            [Segment(start_cs=0, end_cs=50, text="c"), Segment(start_cs=50, end_cs=99, text="d")],
            [Segment(start_cs=5, end_cs=20, text="e")],
        ]
    )
    result = transcribe_samples(engine, silent_buffer(16000 * 3), window_seconds=1)
    starts = [s.start_cs for s in result.segments]
    assert starts == sorted(starts)
    assert all(s.start_cs <= s.end_cs for s in result.segments)


def test_empty_buffer_produces_no_segments_and_no_engine_calls() -> None:
    engine = ScriptedEngine([])
    result = transcribe_samples(engine, silent_buffer(0), window_seconds=30)
    assert result.segments == []
    assert result.windows == []
    assert engine.calls == []
    assert result.meta["windows"] == 0


def test_engine_error_aborts_run_and_reports_window_index() -> None:
    engine = ScriptedEngine(
        [
            [Segment(start_cs=0, end_cs=10, text="ok")],
            engine_error("WHISPER_EXIT_NONZERO"),
            [Segment(start_cs=0, end_cs=10, text="never")],
        ]
    )
    with pytest.raises(EngineError) as excinfo:
        transcribe_samples(engine, silent_buffer(16000 * 3), window_seconds=1)

    assert excinfo.value.window_index == 1
    assert excinfo.value.code == "WHISPER_EXIT_NONZERO"
    assert "window 1" in str(excinfo.value)
    assert len(engine.calls) == 2


def test_unexpected_engine_exception_is_wrapped_with_window_index() -> None:
    engine = ScriptedEngine([RuntimeError("model weights corrupted")])
    with pytest.raises(EngineError) as excinfo:
        transcribe_samples(engine, silent_buffer(100), window_seconds=1)

    assert excinfo.value.code == "ENGINE_UNKNOWN"
    assert excinfo.value.window_index == 0
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_out_of_order_engine_output_aborts_with_timeline_regression() -> None:
    engine = ScriptedEngine(
        [[Segment(start_cs=50, end_cs=60, text="b"), Segment(start_cs=10, end_cs=20, text="a")]]
    )
    with pytest.raises(EngineError) as excinfo:
        transcribe_samples(engine, silent_buffer(16000), window_seconds=1)
    assert excinfo.value.code == "TIMELINE_REGRESSION"
    assert excinfo.value.window_index == 0


def test_run_timeout_is_checked_before_dispatching_next_window(monkeypatch) -> None:
    clock = {"now": 0.0}
    monkeypatch.setattr(stitcher_mod, "time", SimpleNamespace(monotonic=lambda: clock["now"]))

    def slow(window_samples):
        clock["now"] += 10.0
        return [Segment(start_cs=0, end_cs=10, text="slow")]

    engine = ScriptedEngine([slow, slow, slow])
    stitcher = TimelineStitcher(engine, window_seconds=1, sample_rate=16000, run_timeout_sec=5)
    with pytest.raises(RunTimeoutError) as excinfo:
        stitcher.run(silent_buffer(16000 * 3))

    assert excinfo.value.window_index == 1
    assert len(engine.calls) == 1


def test_sample_rate_mismatch_is_rejected_before_inference() -> None:
    engine = ScriptedEngine([])
    stitcher = TimelineStitcher(engine, window_seconds=1, sample_rate=16000)
    with pytest.raises(FormatError) as excinfo:
        stitcher.run(silent_buffer(8000, sample_rate=8000))
    assert excinfo.value.prop == "sample_rate"
    assert engine.calls == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_seconds": 0},
        {"window_seconds": -5},
        {"sample_rate": 0},
        {"policy": "sideways"},
    ],
)
def test_invalid_stitcher_configuration_fails_fast(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        TimelineStitcher(ScriptedEngine([]), **kwargs)


def test_runs_are_independent_on_a_reused_stitcher() -> None:
    engine = FullWindowEngine(sample_rate=16000)
    stitcher = TimelineStitcher(engine, window_seconds=1, sample_rate=16000)
    first = stitcher.run(silent_buffer(16000 * 2))
    second = stitcher.run(silent_buffer(16000 * 2))

    assert [s.start_cs for s in first.segments] == [s.start_cs for s in second.segments] == [0, 100]
    assert [s.seq for s in second.segments] == [1, 2]


def test_on_window_reports_progress_per_window() -> None:
    seen = []
    engine = FullWindowEngine(sample_rate=16000)
    transcribe_samples(
        engine,
        silent_buffer(16000 * 2 + 1),
        window_seconds=1,
        on_window=lambda idx, total, new: seen.append((idx, total, len(new))),
    )
    assert seen == [(0, 3, 1), (1, 3, 1), (2, 3, 1)]


def test_nominal_offsets_track_sample_clock_with_fractional_centisecond_windows() -> None:
    # 1.005s at 16kHz is 16080 samples, i.e. 100.5cs per window.
    engine = ScriptedEngine([[Segment(start_cs=0, end_cs=0, text="tick")]] * 200)
    result = transcribe_samples(engine, silent_buffer(16080 * 200), window_seconds=1.005)

    assert len(engine.calls) == 200
    assert [s.start_cs for s in result.segments[:4]] == [0, 100, 201, 301]
    assert result.segments[-1].start_cs == 199 * 16080 * 100 // 16000 == 19999
    assert result.windows[-1].next_offset_cs == 20100


def test_observed_fallback_on_empty_window_uses_sample_clock_span() -> None:
    engine = ScriptedEngine(
        [
            [Segment(start_cs=0, end_cs=100, text="a")],
            [],
            [Segment(start_cs=0, end_cs=10, text="b")],
        ]
    )
    result = transcribe_samples(
        engine, silent_buffer(16080 * 3), window_seconds=1.005, policy="observed"
    )
    # Second window spans samples [16080, 32160): cs 100 -> 201.
    assert _spans(result) == [(0, 100, "a"), (201, 211, "b")]
