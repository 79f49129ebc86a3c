"""
Pytest fixtures and configuration for vboxdriver tests.
"""
from typing import Callable, Dict, List, Optional, Tuple, Union
from unittest.mock import MagicMock, patch

import pytest

from vboxdriver.backends.vboxmanage import VBoxManageDriver
from vboxdriver.interfaces.process import ProcessResult, ProcessRunner
from vboxdriver.models import DriverConfig, RetrySettings

TOOL_PATH = "/usr/bin/VBoxManage"

Response = Union[ProcessResult, Callable[[List[str]], ProcessResult]]


class FakeRunner(ProcessRunner):
    """Scripted ProcessRunner that records every command it is given.

    Responses are keyed by the leading VBoxManage arguments; the longest
    matching prefix wins. A list of responses is consumed one per call.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self._responses: Dict[Tuple[str, ...], List[Response]] = {}

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> "FakeRunner":
        return self.respond(prefix, ProcessResult(returncode=returncode, stdout=stdout, stderr=stderr))

    def respond(self, prefix, *responses: Response) -> "FakeRunner":
        self._responses.setdefault(tuple(prefix), []).extend(responses)
        return self

    def run(self, command: List[str], timeout: Optional[float] = None) -> ProcessResult:
        self.calls.append(list(command))
        args = tuple(command[1:])
        for size in range(len(args), -1, -1):
            queue = self._responses.get(args[:size])
            if queue:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                if callable(response):
                    return response(command)
                return response
        return ProcessResult(returncode=0, stdout="", stderr="")

    @property
    def args(self) -> List[List[str]]:
        """Recorded calls without the tool path."""
        return [call[1:] for call in self.calls]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def config():
    return DriverConfig(
        vboxmanage_path=TOOL_PATH,
        retry=RetrySettings(attempts=5, initial_delay=0, max_delay=0),
        stop_grace_seconds=2.0,
    )


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def driver(config, runner, sleep):
    return VBoxManageDriver(config=config, runner=runner, sleep=sleep)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing without actual command execution."""
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        yield mock_run


SNAPSHOT_LISTING = """\
SnapshotName="base"
SnapshotUUID="11111111-0000-0000-0000-000000000001"
SnapshotName-1="configured"
SnapshotUUID-1="11111111-0000-0000-0000-000000000002"
SnapshotName-1-1="provisioned"
SnapshotUUID-1-1="11111111-0000-0000-0000-000000000003"
CurrentSnapshotName="provisioned"
CurrentSnapshotUUID="11111111-0000-0000-0000-000000000003"
CurrentSnapshotNode="SnapshotName-1-1"
SnapshotName-2="hotfix"
SnapshotUUID-2="11111111-0000-0000-0000-000000000004"
"""


@pytest.fixture
def snapshot_listing():
    return SNAPSHOT_LISTING


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "integration: Tests that need a real VBoxManage")
