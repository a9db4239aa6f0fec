"""
Tests for RunOrchestrator.

These run the real supervisory thread against a fake batch script executed
by the current interpreter.

Validates:
1. Folders run strictly in order, one Stage event each
2. A failing folder aborts the run with its exit code
3. Stop kills the active job; stop between folders reports 130
4. Exactly one run is admitted at a time
5. Cleanup always removes the pause flag and resets status
"""

import threading

import pytest

from batchscribe.events.models import FinishEvent, LogEvent, StageEvent, StatusEvent
from batchscribe.events.publisher import EventPublisher
from batchscribe.runner.errors import RejectionError
from batchscribe.runner.models import RunPhase, RunRequest
from batchscribe.runner.orchestrator import RunOrchestrator
from batchscribe.runner.pause import PAUSE_FLAG_FILENAME, PauseSignal
from batchscribe.runner.supervisor import ProcessSupervisor

pytestmark = pytest.mark.slow

FINISH_TIMEOUT = 30


@pytest.fixture
def orchestrator(settings, publisher):
    orch = RunOrchestrator(settings=settings, publisher=publisher)
    yield orch
    # Never leave a job process behind
    orch.stop()
    orch.wait(FINISH_TIMEOUT)


def _wait_for_log(recorder, text, timeout=FINISH_TIMEOUT):
    """Block until a log line containing text is buffered."""
    after = 0
    while True:
        event = recorder.wait_for(LogEvent, timeout=timeout, after=after)
        if event is None:
            return None
        for seq, buffered in recorder.since(after):
            after = seq
            if isinstance(buffered, LogEvent) and text in buffered.line:
                return buffered


class TestStartRejections:

    def test_empty_folder_list_rejected(self, orchestrator, make_request):
        with pytest.raises(RejectionError) as exc_info:
            orchestrator.start(make_request([]))

        assert str(exc_info.value) == "At least one input folder is required."
        assert orchestrator.get_status().running is False

    @pytest.mark.parametrize("field,message", [
        ("output_folder", "Output folder is required."),
        ("whisper_exe", "Whisper executable path is required."),
        ("model_file", "Model file path is required."),
    ])
    def test_blank_required_field_rejected(self, orchestrator, make_request, make_input_folder, field, message):
        request = make_request([make_input_folder("a")], **{field: "  "})
        with pytest.raises(RejectionError, match=message):
            orchestrator.start(request)
        assert orchestrator.get_status().running is False

    def test_preflight_failure_rejected(self, orchestrator, make_request, make_input_folder, tmp_path, recorder):
        request = make_request([make_input_folder("a")], model_file=str(tmp_path / "gone.bin"))

        with pytest.raises(RejectionError) as exc_info:
            orchestrator.start(request)

        assert str(exc_info.value).startswith("Preflight failed: model_file:")
        assert orchestrator.get_status().running is False
        assert recorder.of_type(FinishEvent) == []


class TestRunToCompletion:

    def test_two_folders_complete(self, orchestrator, make_request, make_input_folder, recorder, output_folder):
        """
        GIVEN: Two input folders whose jobs exit 0
        WHEN: The run starts
        THEN: Stage 1/2 then 2/2, job output relayed, Finish(True, 0)
        """
        a, b = make_input_folder("a"), make_input_folder("b")

        status = orchestrator.start(make_request([a, b]))
        assert status.running is True

        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        assert finish == FinishEvent(success=True, code=0, message="Transcription complete.")

        stages = recorder.of_type(StageEvent)
        assert [(s.index, s.total, s.input_folder) for s in stages] == [
            (1, 2, str(a)),
            (2, 2, str(b)),
        ]

        stdout = recorder.log_lines("stdout")
        assert stdout == ["processing a", "processing b"]
        assert recorder.log_lines("stderr") == ["warn a", "warn b"]

        system = recorder.log_lines("system")
        assert system[0].startswith("Using batch script:")
        assert "Completed folder 1/2" in system
        assert "Completed folder 2/2" in system

        assert orchestrator.wait(FINISH_TIMEOUT) is True
        assert orchestrator.get_status().phase == RunPhase.IDLE
        assert not (output_folder / PAUSE_FLAG_FILENAME).exists()

    def test_job_output_precedes_completion_line(self, orchestrator, make_request, make_input_folder, recorder):
        orchestrator.start(make_request([make_input_folder("a")]))
        recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)

        lines = [e.line for e in recorder.of_type(LogEvent)]
        assert lines.index("processing a") < lines.index("Completed folder 1/1")

    def test_failed_folder_aborts_run(self, orchestrator, make_request, make_input_folder, recorder):
        """
        GIVEN: Three folders, the second exits with code 3
        WHEN: The run starts
        THEN: Finish(False, 3); the third folder never starts
        """
        folders = [make_input_folder("a"), make_input_folder("b", exit_code=3), make_input_folder("c")]

        orchestrator.start(make_request(folders))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)

        assert finish.success is False
        assert finish.code == 3
        assert finish.message == "Folder run failed (exit code 3)."
        assert len(recorder.of_type(StageEvent)) == 2
        assert [l for l in recorder.log_lines("system") if l.startswith("Completed folder")] == ["Completed folder 1/3"]
        assert "processing c" not in recorder.log_lines("stdout")

    def test_run_again_after_finish(self, orchestrator, make_request, make_input_folder, recorder):
        request = make_request([make_input_folder("a")])

        orchestrator.start(request)
        recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)
        after = recorder.last_seq

        orchestrator.start(request)
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT, after=after)
        assert finish.success is True

    def test_last_status_event_is_idle(self, orchestrator, make_request, make_input_folder, recorder):
        orchestrator.start(make_request([make_input_folder("a")]))
        recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)

        statuses = recorder.of_type(StatusEvent)
        assert statuses[0].running is True
        assert statuses[-1] == StatusEvent(running=False, paused=False, stop_requested=False)

    def test_padded_folder_runs_trimmed_path(self, orchestrator, make_request, make_input_folder, recorder):
        """
        GIVEN: An input folder path wrapped in spaces whose job exits 7
        WHEN: The run starts
        THEN: Stage, job argument and outcome all use the trimmed path
        """
        a = make_input_folder("a", exit_code=7)

        orchestrator.start(make_request([f"  {a}  "]))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)

        assert finish == FinishEvent(success=False, code=7, message="Folder run failed (exit code 7).")
        assert recorder.of_type(StageEvent)[0].input_folder == str(a)
        assert recorder.log_lines("stdout") == ["processing a"]
        assert f"Starting folder 1/1: {a}" in recorder.log_lines("system")


class TestSpawnFailure:

    def test_missing_job_runner_finishes_with_code_one(self, publisher, recorder, make_request, make_input_folder, tmp_path, settings):
        broken = settings.model_copy(update={
            "job_runner": str(tmp_path / "no-such-runner"),
            "preflight_on_start": False,
        })
        orchestrator = RunOrchestrator(settings=broken, publisher=publisher)

        orchestrator.start(make_request([make_input_folder("a")]))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)

        assert finish.success is False
        assert finish.code == 1
        assert finish.message.startswith("Failed to start job process:")
        assert len(recorder.of_type(StageEvent)) == 1
        assert orchestrator.wait(FINISH_TIMEOUT) is True
        assert orchestrator.get_status().running is False

    def test_unresolvable_script_without_preflight(self, publisher, recorder, make_request, make_input_folder, tmp_path, settings):
        orchestrator = RunOrchestrator(
            settings=settings.model_copy(update={"preflight_on_start": False}),
            publisher=publisher,
        )

        orchestrator.start(make_request([make_input_folder("a")], script_path=str(tmp_path / "x.ps1")))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)

        assert finish.code == 1
        assert finish.message.startswith("Script path does not exist")
        assert recorder.of_type(StageEvent) == []

    def test_poll_error_ends_folder_with_code_one(self, publisher, recorder, make_request, make_input_folder, settings):
        class _FailingPoll(ProcessSupervisor):
            def poll(self, process):
                process.wait(FINISH_TIMEOUT)
                raise OSError("wait failed")

        orchestrator = RunOrchestrator(settings=settings, publisher=publisher, supervisor=_FailingPoll())

        orchestrator.start(make_request([make_input_folder("a"), make_input_folder("b")]))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)

        assert finish == FinishEvent(success=False, code=1, message="Folder run failed (exit code 1).")
        assert "Process wait error: wait failed" in recorder.log_lines("system")
        assert len(recorder.of_type(StageEvent)) == 1
        assert orchestrator.get_status().running is False


class TestStop:

    def test_stop_kills_active_job(self, orchestrator, make_request, make_input_folder, recorder, output_folder):
        """
        GIVEN: A job that hangs
        WHEN: stop() is called while it runs
        THEN: The job is killed, Finish(False, 1, "Stopped by user.")
        """
        orchestrator.start(make_request([make_input_folder("a", hang=True), make_input_folder("b")]))
        assert _wait_for_log(recorder, "processing a") is not None

        orchestrator.stop()

        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        assert finish == FinishEvent(success=False, code=1, message="Stopped by user.")
        assert "Stop requested. Finishing current checkpoint..." in recorder.log_lines("system")
        assert len(recorder.of_type(StageEvent)) == 1

        orchestrator.wait(FINISH_TIMEOUT)
        status = orchestrator.get_status()
        assert status.running is False
        assert status.stop_requested is False
        assert not (output_folder / PAUSE_FLAG_FILENAME).exists()

    def test_stop_between_folders_reports_130(self, settings, recorder, make_request, make_input_folder):
        orchestrator = RunOrchestrator(settings=settings, publisher=EventPublisher([recorder]))

        class _StopAfterFirstFolder:
            def publish(self, event):
                if isinstance(event, LogEvent) and event.line == "Completed folder 1/2":
                    orchestrator.stop()

        orchestrator.publisher.add_sink(_StopAfterFirstFolder())

        orchestrator.start(make_request([make_input_folder("a"), make_input_folder("b")]))
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)

        assert finish == FinishEvent(success=False, code=130, message="Stopped by user before next folder.")
        assert len(recorder.of_type(StageEvent)) == 1
        assert "processing b" not in recorder.log_lines("stdout")

    def test_stop_while_idle_is_noop(self, orchestrator, recorder):
        status = orchestrator.stop()
        assert status.running is False
        assert status.stop_requested is False
        assert recorder.events() == []

    def test_stop_racing_cleanup_stays_idle(self, settings, publisher, recorder):
        """
        GIVEN: A run whose cleanup completes while stop() is in progress
        WHEN: stop() sets its flag after cleanup reset it
        THEN: The flag is withdrawn and status reads idle
        """
        orchestrator = RunOrchestrator(settings=settings, publisher=publisher)
        orchestrator.state.set_running(True)
        set_stop = orchestrator.state.set_stop_requested

        def cleanup_then_set(value):
            orchestrator.state.set_running(False)
            set_stop(value)

        orchestrator.state.set_stop_requested = cleanup_then_set

        status = orchestrator.stop()

        assert status.running is False
        assert status.stop_requested is False
        assert status.phase == RunPhase.IDLE
        assert recorder.log_lines("system") == []


class TestSingleActiveRun:

    def test_second_start_rejected_while_running(self, orchestrator, make_request, make_input_folder, recorder):
        orchestrator.start(make_request([make_input_folder("a", hang=True)]))

        with pytest.raises(RejectionError, match="A transcription run is already in progress."):
            orchestrator.start(make_request([make_input_folder("b")]))

        orchestrator.stop()
        finish = recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        assert finish.code == 1
        assert len(recorder.of_type(FinishEvent)) == 1

    def test_concurrent_starts_admit_one(self, orchestrator, make_request, make_input_folder):
        request = make_request([make_input_folder("a", hang=True)])
        barrier = threading.Barrier(2)
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                orchestrator.start(request)
                result = "accepted"
            except RejectionError as e:
                result = str(e)
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(FINISH_TIMEOUT)

        assert sorted(outcomes) == ["A transcription run is already in progress.", "accepted"]


class TestPause:

    def test_pause_and_resume_toggle_flag_file(self, orchestrator, make_request, make_input_folder, recorder, output_folder):
        orchestrator.start(make_request([make_input_folder("a", hang=True)]))
        flag = output_folder / PAUSE_FLAG_FILENAME

        status = orchestrator.toggle_pause(True)
        assert status.paused is True
        assert flag.exists()
        assert f"Pause requested (flag: {flag})." in recorder.log_lines("system")

        status = orchestrator.toggle_pause(False)
        assert status.paused is False
        assert not flag.exists()
        assert "Resume requested." in recorder.log_lines("system")

    def test_resume_when_not_paused_is_silent(self, orchestrator, make_request, make_input_folder, recorder):
        orchestrator.start(make_request([make_input_folder("a", hang=True)]))
        orchestrator.toggle_pause(False)
        assert "Resume requested." not in recorder.log_lines("system")

    def test_pause_flag_removed_at_cleanup(self, orchestrator, make_request, make_input_folder, recorder, output_folder):
        orchestrator.start(make_request([make_input_folder("a", hang=True)]))
        orchestrator.toggle_pause(True)

        orchestrator.stop()
        recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)

        assert not (output_folder / PAUSE_FLAG_FILENAME).exists()
        assert orchestrator.get_status().paused is False

    def test_stale_flag_removed_on_start(self, orchestrator, make_request, make_input_folder, output_folder):
        output_folder.mkdir(parents=True)
        (output_folder / PAUSE_FLAG_FILENAME).write_text("left over")

        status = orchestrator.start(make_request([make_input_folder("a", hang=True)]))

        assert status.paused is False
        assert not (output_folder / PAUSE_FLAG_FILENAME).exists()

    def test_pause_without_run_rejected(self, orchestrator):
        with pytest.raises(RejectionError, match="No active run to pause/resume."):
            orchestrator.toggle_pause(True)

    def test_pause_during_cleanup_leaves_no_flag(self, orchestrator, make_request, make_input_folder, recorder, output_folder, monkeypatch):
        """
        GIVEN: A pause request arriving while cleanup removes the flag
        WHEN: The run finishes
        THEN: The pause is rejected and no flag file remains
        """
        rejections = []

        class _PauseDuringCleanup(PauseSignal):
            def clear(self):
                removed = super().clear()
                if threading.current_thread().name == "batchscribe-run":
                    try:
                        orchestrator.toggle_pause(True)
                    except RejectionError as e:
                        rejections.append(str(e))
                return removed

        monkeypatch.setattr("batchscribe.runner.orchestrator.PauseSignal", _PauseDuringCleanup)

        orchestrator.start(make_request([make_input_folder("a")]))
        recorder.wait_for(FinishEvent, timeout=FINISH_TIMEOUT)
        orchestrator.wait(FINISH_TIMEOUT)

        assert rejections == ["Pause flag path not initialized."]
        assert not (output_folder / PAUSE_FLAG_FILENAME).exists()


def test_request_accepts_camel_case():
    request = RunRequest.model_validate({
        "inputFolders": ["/in/a"],
        "outputFolder": "/out",
        "whisperExe": "whisper-cli",
        "modelFile": "/m.bin",
        "noRecursive": True,
        "keepAudio": True,
    })
    assert request.no_recursive is True
    assert request.keep_audio is True
    assert request.threads == 4
