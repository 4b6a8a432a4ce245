import json
import subprocess
from pathlib import Path

import numpy as np
import pytest

from chunkscribe.internal_core.asr import EngineError, WhisperCppEngine, parse_whisper_json
from chunkscribe.internal_core.asr.whisper_cpp import whisper_cpp_available


def _payload() -> dict:
    return {
        "result": {"language": "en"},
        "transcription": [
            {
                "timestamps": {"from": "00:00:00,000", "to": "00:00:02,480"},
                "offsets": {"from": 0, "to": 2480},
                "text": " And so my fellow Americans",
            },
            {
                "timestamps": {"from": "00:00:02,480", "to": "00:00:07,005"},
                "offsets": {"from": 2480, "to": 7005},
                "text": " ask not what your country can do for you",
            },
        ],
    }


def test_parse_whisper_json_converts_ms_offsets_to_centiseconds() -> None:
    segments = parse_whisper_json(_payload())
    assert [(s.start_cs, s.end_cs) for s in segments] == [(0, 248), (248, 700)]
    assert segments[0].text == " And so my fellow Americans"


def test_parse_whisper_json_rejects_missing_transcription() -> None:
    with pytest.raises(ValueError):
        parse_whisper_json({"result": {}})
    with pytest.raises(ValueError):
        parse_whisper_json({"transcription": [{"text": "no offsets"}]})


def _fake_setup(tmp_path: Path):
    bin_path = tmp_path / "whisper-cli"
    bin_path.write_text("#!/bin/sh\n", encoding="utf-8")
    model_path = tmp_path / "ggml-tiny.bin"
    model_path.write_bytes(b"\x00")
    return str(bin_path), str(model_path)


def test_transcribe_runs_whisper_cli_and_reads_json(tmp_path, monkeypatch) -> None:
    bin_path, model_path = _fake_setup(tmp_path)
    captured = {}

    def fake_run(cmd, **kwargs):
        captured["cmd"] = cmd
        prefix = Path(cmd[cmd.index("-of") + 1])
        assert Path(cmd[cmd.index("-f") + 1]).exists()
        prefix.with_suffix(".json").write_text(json.dumps(_payload()), encoding="utf-8")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("chunkscribe.internal_core.asr.whisper_cpp.subprocess.run", fake_run)
    engine = WhisperCppEngine(
        bin_path, model_path, initial_prompt="experience", flash_attn=True, no_gpu=True, tmp_dir=tmp_path / "tmp"
    )
    progress = []
    segments = engine.transcribe(np.zeros(16000, dtype=np.float32), on_progress=progress.append)

    assert len(segments) == 2
    assert progress == [0.0, 1.0]
    cmd = captured["cmd"]
    assert cmd[1] == "-ng"
    assert "-oj" in cmd and "-fa" in cmd
    assert cmd[cmd.index("--prompt") + 1] == "experience"
    assert cmd[cmd.index("-m") + 1] == model_path


def test_transcribe_nonzero_exit_raises_engine_error(tmp_path, monkeypatch) -> None:
    bin_path, model_path = _fake_setup(tmp_path)
    monkeypatch.setattr(
        "chunkscribe.internal_core.asr.whisper_cpp.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 3, stdout="", stderr="failed to load model"),
    )
    with pytest.raises(EngineError) as excinfo:
        WhisperCppEngine(bin_path, model_path).transcribe(np.zeros(10, dtype=np.float32))
    assert excinfo.value.code == "WHISPER_EXIT_NONZERO"
    assert "failed to load model" in excinfo.value.message


def test_transcribe_timeout_raises_engine_error(tmp_path, monkeypatch) -> None:
    bin_path, model_path = _fake_setup(tmp_path)

    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr("chunkscribe.internal_core.asr.whisper_cpp.subprocess.run", fake_run)
    with pytest.raises(EngineError) as excinfo:
        WhisperCppEngine(bin_path, model_path, timeout_sec=1).transcribe(np.zeros(10, dtype=np.float32))
    assert excinfo.value.code == "WHISPER_TIMEOUT"


def test_transcribe_without_json_output_is_bad_output(tmp_path, monkeypatch) -> None:
    bin_path, model_path = _fake_setup(tmp_path)
    monkeypatch.setattr(
        "chunkscribe.internal_core.asr.whisper_cpp.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="", stderr=""),
    )
    with pytest.raises(EngineError) as excinfo:
        WhisperCppEngine(bin_path, model_path).transcribe(np.zeros(10, dtype=np.float32))
    assert excinfo.value.code == "WHISPER_BAD_OUTPUT"


def test_missing_binary_and_model_are_reported(tmp_path) -> None:
    _, model_path = _fake_setup(tmp_path)
    with pytest.raises(EngineError) as excinfo:
        WhisperCppEngine(str(tmp_path / "nope" / "whisper-cli"), model_path).transcribe(np.zeros(1))
    assert excinfo.value.code == "WHISPER_BIN_MISSING"

    bin_path, _ = _fake_setup(tmp_path)
    with pytest.raises(EngineError) as excinfo:
        WhisperCppEngine(bin_path, str(tmp_path / "missing.bin")).transcribe(np.zeros(1))
    assert excinfo.value.code == "WHISPER_MODEL_MISSING"

    ok, reason = whisper_cpp_available(bin_path, str(tmp_path / "missing.bin"))
    assert not ok
    assert "model not found" in reason
    assert whisper_cpp_available(bin_path, model_path) == (True, "")
