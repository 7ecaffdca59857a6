"""
Unit tests for TranscriptionPipeline - ordered fallback, deadlines and
aggregated failures (stub providers, no audio or network needed)
"""
import pytest

from voicediary.errors import TranscriptionErrorKind, TranscriptionFailed
from voicediary.transcription_service import TranscriptionPipeline

from tests.conftest import StubProvider, failing_provider


class TestFallbackOrder:

    def test_primary_success_skips_fallback(self, temp_audio_file):
        primary = StubProvider("cloud", text="from cloud")
        fallback = StubProvider("device", text="from device")
        result = TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)

        assert result.text == "from cloud"
        assert result.provider == "cloud"
        assert result.used_fallback is False
        assert fallback.calls == []

    def test_primary_failure_uses_fallback(self, temp_audio_file):
        primary = failing_provider("cloud")
        fallback = StubProvider("device", text="from device")
        result = TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)

        assert result.text == "from device"
        assert result.provider == "device"
        assert [e.kind for e in result.attempts] == [TranscriptionErrorKind.HTTP_FAILURE]

    def test_each_provider_tried_exactly_once(self, temp_audio_file):
        primary = failing_provider("cloud")
        fallback = failing_provider("device", kind=TranscriptionErrorKind.UNAVAILABLE)
        with pytest.raises(TranscriptionFailed):
            TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)
        assert len(primary.calls) == 1
        assert len(fallback.calls) == 1

    def test_missing_credential_passes_to_fallback(self, temp_audio_file):
        primary = failing_provider("cloud", kind=TranscriptionErrorKind.MISSING_CREDENTIAL)
        fallback = StubProvider("device", text="ok")
        result = TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)
        assert result.text == "ok"
        assert result.attempts[0].kind == TranscriptionErrorKind.MISSING_CREDENTIAL

    def test_empty_text_is_success(self, temp_audio_file):
        result = TranscriptionPipeline([StubProvider("cloud", text="")]).transcribe(temp_audio_file)
        assert result.text == ""


class TestTerminalFailure:

    def test_all_failing_raises_aggregate(self, temp_audio_file):
        primary = failing_provider("cloud")
        fallback = failing_provider("device", kind=TranscriptionErrorKind.UNAVAILABLE)
        with pytest.raises(TranscriptionFailed) as excinfo:
            TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)

        error = excinfo.value
        assert error.kinds() == [TranscriptionErrorKind.HTTP_FAILURE, TranscriptionErrorKind.UNAVAILABLE]
        assert error.kind == TranscriptionErrorKind.UNAVAILABLE
        assert error.attempts[0].status == 500
        assert error.attempts[0].body == "server error"
        assert [e.provider for e in error.attempts] == ["cloud", "device"]

    def test_authorization_denied(self, temp_audio_file):
        primary = failing_provider("cloud")
        fallback = StubProvider("device", text="never", authorized=False, requires_authorization=True)
        with pytest.raises(TranscriptionFailed) as excinfo:
            TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)

        assert excinfo.value.kind == TranscriptionErrorKind.NOT_AUTHORIZED
        assert fallback.authorization_requests == 1
        assert fallback.calls == []

    def test_authorization_only_requested_when_reached(self, temp_audio_file):
        primary = StubProvider("cloud", text="ok")
        fallback = StubProvider("device", text="x", requires_authorization=True)
        TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)
        assert fallback.authorization_requests == 0

    def test_no_providers(self, temp_audio_file):
        with pytest.raises(TranscriptionFailed) as excinfo:
            TranscriptionPipeline([]).transcribe(temp_audio_file)
        assert excinfo.value.attempts == []

    def test_unexpected_exception_becomes_failed_kind(self, temp_audio_file):
        primary = StubProvider("cloud", error=RuntimeError("boom"))
        fallback = StubProvider("device", text="recovered")
        result = TranscriptionPipeline([primary, fallback]).transcribe(temp_audio_file)
        assert result.text == "recovered"
        assert result.attempts[0].kind == TranscriptionErrorKind.FAILED
        assert "boom" in str(result.attempts[0])


class TestDeadline:

    def test_slow_provider_times_out_and_falls_back(self, temp_audio_file):
        slow = StubProvider("cloud", text="too late", delay=1.0)
        fallback = StubProvider("device", text="fast")
        result = TranscriptionPipeline([slow, fallback], timeout_seconds=0.1).transcribe(temp_audio_file)

        assert result.text == "fast"
        assert result.attempts[0].kind == TranscriptionErrorKind.TIMEOUT
        assert result.attempts[0].provider == "cloud"

    def test_all_timing_out(self, temp_audio_file):
        providers = [StubProvider("a", text="x", delay=0.5), StubProvider("b", text="y", delay=0.5)]
        with pytest.raises(TranscriptionFailed) as excinfo:
            TranscriptionPipeline(providers, timeout_seconds=0.05).transcribe(temp_audio_file)
        assert excinfo.value.kinds() == [TranscriptionErrorKind.TIMEOUT, TranscriptionErrorKind.TIMEOUT]
