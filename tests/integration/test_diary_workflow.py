"""
End-to-end diary workflows through VoiceDiaryApp and the CLI entry point,
using a temporary store and stub transcription providers
"""
import json
from datetime import date, datetime
from unittest.mock import patch

import pytest

import main
from main import VoiceDiaryApp
from voicediary.errors import TranscriptionErrorKind, WriteError
from voicediary.models import Mood
from voicediary.transcription_service import TranscriptionPipeline

from tests.conftest import StubProvider, failing_provider


@pytest.fixture
def app(store, mock_audio_service):
    pipeline = TranscriptionPipeline([
        failing_provider("cloud", kind=TranscriptionErrorKind.MISSING_CREDENTIAL),
        StubProvider("device", text="transcribed on device"),
    ])
    return VoiceDiaryApp(store=store, pipeline=pipeline, audio_service=mock_audio_service)


class TestVoiceEntryWorkflow:

    def test_voice_entry_is_transcribed_and_stored(self, app, temp_audio_file):
        entry = app.add_entry(audio=temp_audio_file, mood=Mood.NEUTRAL, tags=["#Family "],
                              when=datetime(2024, 3, 4, 10, 0))

        stored = app.store.load_all_on(date(2024, 3, 4))
        assert [e.id for e in stored] == [entry.id]
        assert stored[0].text == "transcribed on device"
        assert stored[0].tags == ["family"]
        assert stored[0].audio_duration_seconds == 42.5
        assert app.store.resolve_audio(stored[0]) is not None
        assert not temp_audio_file.exists()

    def test_failed_transcription_keeps_audio(self, store, mock_audio_service, temp_audio_file):
        pipeline = TranscriptionPipeline([failing_provider("cloud"), failing_provider("device")])
        app = VoiceDiaryApp(store=store, pipeline=pipeline, audio_service=mock_audio_service)

        entry = app.add_entry(audio=temp_audio_file, when=datetime(2024, 3, 4, 10, 0))
        stored = store.get(entry.id)
        assert stored.text == ""
        assert store.resolve_audio(stored) is not None

    def test_typed_text_is_not_overwritten_by_transcription(self, app, temp_audio_file):
        entry = app.add_entry(text="typed", audio=temp_audio_file)
        assert app.store.get(entry.id).text == "typed"

    def test_failed_save_keeps_draft_for_retry(self, app):
        with patch.object(app.store, "save", side_effect=WriteError("disk full")):
            with pytest.raises(WriteError):
                app.add_entry(text="draft", when=datetime(2024, 3, 4, 10, 0))
        assert app.store.load_all() == []

        entry = app.add_entry(text="draft", when=datetime(2024, 3, 4, 10, 0))
        assert app.store.get(entry.id).text == "draft"

    def test_delete_cleans_record_index_and_blob(self, app, temp_audio_file):
        entry = app.add_entry(audio=temp_audio_file)
        blob = app.store.resolve_audio(entry)
        app.store.delete(entry.id)

        assert not blob.exists()
        assert app.store.index.read() == []
        assert app.aggregation.refresh().entry_count == 0


class TestCommandLine:

    def run(self, diary_dir, tmp_path, monkeypatch, *args):
        monkeypatch.chdir(tmp_path)
        return main.main(["--directory", str(diary_dir)] + list(args))

    def test_add_list_day_delete(self, diary_dir, tmp_path, monkeypatch, capsys):
        assert self.run(diary_dir, tmp_path, monkeypatch, "add", "--text", "hello",
                        "--mood", "neutral", "--tags", "#Work, walks", "--date", "2024-03-04T10:00") == 0
        entry_id = json.loads((diary_dir / "index.json").read_text())["ids"][0]

        capsys.readouterr()
        assert self.run(diary_dir, tmp_path, monkeypatch, "day", "2024-03-04") == 0
        out = capsys.readouterr().out
        assert entry_id in out
        assert "#work #walks" in out

        assert self.run(diary_dir, tmp_path, monkeypatch, "show", entry_id) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["text"] == "hello"
        assert shown["mood"] == "neutral"

        assert self.run(diary_dir, tmp_path, monkeypatch, "delete", entry_id) == 0
        assert json.loads((diary_dir / "index.json").read_text())["ids"] == []

    def test_show_unknown_id(self, diary_dir, tmp_path, monkeypatch):
        assert self.run(diary_dir, tmp_path, monkeypatch, "show", "NOPE") == 1

    def test_stats(self, diary_dir, tmp_path, monkeypatch, capsys):
        self.run(diary_dir, tmp_path, monkeypatch, "add", "--text", "one two three")
        capsys.readouterr()
        assert self.run(diary_dir, tmp_path, monkeypatch, "stats") == 0
        out = capsys.readouterr().out
        assert "Entries: 1" in out
        assert "Words: 3" in out

    def test_rebuild_index(self, diary_dir, tmp_path, monkeypatch, capsys):
        self.run(diary_dir, tmp_path, monkeypatch, "add", "--text", "kept")
        (diary_dir / "index.json").write_text("corrupt")
        capsys.readouterr()
        assert self.run(diary_dir, tmp_path, monkeypatch, "rebuild-index") == 0
        assert "1 entries" in capsys.readouterr().out

    def test_no_command_prints_help(self, diary_dir, tmp_path, monkeypatch):
        assert self.run(diary_dir, tmp_path, monkeypatch) == 1

    def test_show_config_redacts_key(self, diary_dir, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("config.config.OPENAI_API_KEY", "sk-secret")
        assert self.run(diary_dir, tmp_path, monkeypatch, "--show-config") == 0
        out = capsys.readouterr().out
        assert "sk-secret" not in out
        assert json.loads(out)["openai_api_key"] == "set"

    def test_delete_invalid_id_is_not_an_error(self, diary_dir, tmp_path, monkeypatch, capsys):
        assert self.run(diary_dir, tmp_path, monkeypatch, "delete", "a/b") == 0
        assert "No entry with id a/b" in capsys.readouterr().out
