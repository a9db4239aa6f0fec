"""
Pytest configuration for the batchscribe test suite.

The "batch script" used by these tests is a small Python file run by the
current interpreter, so nothing here needs PowerShell, ffmpeg or whisper.
"""

import sys
import textwrap
from pathlib import Path

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from batchscribe.events.publisher import EventPublisher, RecordingSink  # noqa: E402
from batchscribe.runner.models import RunRequest  # noqa: E402
from batchscribe.settings import RunnerSettings  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that spawn real job processes"
    )


# Stand-in for the PowerShell batch script. Behavior is driven by marker
# files inside the input folder:
#   exit_code  - integer to exit with (default 0)
#   hang       - sleep long enough to be killed
FAKE_JOB_SOURCE = textwrap.dedent(
    """
    import sys
    import time
    from pathlib import Path

    args = sys.argv[1:]
    folder = Path(args[args.index("-InputFolder") + 1])

    print(f"processing {folder.name}", flush=True)
    print(f"warn {folder.name}", file=sys.stderr, flush=True)

    if (folder / "hang").exists():
        time.sleep(60)

    code_file = folder / "exit_code"
    sys.exit(int(code_file.read_text().strip()) if code_file.exists() else 0)
    """
)


@pytest.fixture
def fake_job_script(tmp_path):
    script = tmp_path / "fake_job.py"
    script.write_text(FAKE_JOB_SOURCE)
    return script


@pytest.fixture
def whisper_exe(tmp_path):
    exe = tmp_path / "tools" / "whisper-cli"
    exe.parent.mkdir(parents=True, exist_ok=True)
    exe.write_text("not really whisper")
    return exe


@pytest.fixture
def model_file(tmp_path):
    model = tmp_path / "models" / "ggml-base.en.bin"
    model.parent.mkdir(parents=True, exist_ok=True)
    model.write_bytes(b"\x00" * 16)
    return model


@pytest.fixture
def output_folder(tmp_path):
    return tmp_path / "out"


@pytest.fixture
def make_input_folder(tmp_path):
    """Factory: create an input folder with optional behavior markers."""

    def _make(name, exit_code=None, hang=False):
        folder = tmp_path / "in" / name
        folder.mkdir(parents=True, exist_ok=True)
        if exit_code is not None:
            (folder / "exit_code").write_text(str(exit_code))
        if hang:
            (folder / "hang").write_text("")
        return folder

    return _make


@pytest.fixture
def settings():
    """Runner settings that use the current interpreter as job runner."""
    return RunnerSettings(
        job_runner=sys.executable,
        runner_args=[],
        media_tool=sys.executable,
        bundle_dir=None,
        poll_interval=0.02,
        lock_timeout=2.0,
        reader_join_timeout=5.0,
    )


@pytest.fixture
def make_request(fake_job_script, whisper_exe, model_file, output_folder):
    """Factory: a complete run request over the given input folders."""

    def _make(folders, **overrides):
        values = dict(
            input_folders=[str(f) for f in folders],
            output_folder=str(output_folder),
            whisper_exe=str(whisper_exe),
            model_file=str(model_file),
            script_path=str(fake_job_script),
        )
        values.update(overrides)
        return RunRequest(**values)

    return _make


@pytest.fixture
def recorder():
    return RecordingSink()


@pytest.fixture
def publisher(recorder):
    return EventPublisher([recorder])
