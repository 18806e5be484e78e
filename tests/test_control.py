"""Tests for the control-channel writer."""

import io
import os

import pytest

from gitwt.control import ControlChannelWriter, format_cd_line, shell_integration_enabled
from gitwt.models import NavigationResult


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


def drain(read_fd: int, write_fd: int) -> bytes:
    os.close(write_fd)
    chunks = []
    while chunk := os.read(read_fd, 1024):
        chunks.append(chunk)
    return b"".join(chunks)


class TestShellIntegrationFlag:
    def test_enabled_only_for_one(self):
        assert shell_integration_enabled({"GWT_USE_FD3": "1"})
        assert not shell_integration_enabled({"GWT_USE_FD3": "0"})
        assert not shell_integration_enabled({})


class TestControlDescriptor:
    def test_writes_exactly_one_cd_line(self, pipe):
        read_fd, write_fd = pipe
        stdout = io.StringIO()
        writer = ControlChannelWriter(stdout, use_control_fd=True, control_fd=write_fd)

        writer.emit(NavigationResult.to("/repo/trees/feature-a"))

        assert drain(read_fd, write_fd) == b"cd /repo/trees/feature-a\n"
        assert stdout.getvalue() == ""

    def test_cancelled_writes_nothing(self, pipe):
        read_fd, write_fd = pipe
        stdout = io.StringIO()
        writer = ControlChannelWriter(stdout, use_control_fd=True, control_fd=write_fd)

        writer.emit(NavigationResult.cancel())

        assert drain(read_fd, write_fd) == b""
        assert stdout.getvalue() == ""

    def test_unwritable_descriptor_degrades_to_human_line(self, pipe, caplog):
        read_fd, _ = pipe
        stdout = io.StringIO()
        # The read end of a pipe cannot be written to
        writer = ControlChannelWriter(stdout, use_control_fd=True, control_fd=read_fd)

        with caplog.at_level("WARNING", logger="gitwt.control"):
            writer.emit(NavigationResult.to("/repo/trees/feature-a"))

        assert stdout.getvalue() == "Navigate to: /repo/trees/feature-a\n"
        assert "printing the path instead" in caplog.text


class TestWithoutShellIntegration:
    def test_prints_human_instruction(self, pipe):
        read_fd, write_fd = pipe
        stdout = io.StringIO()
        writer = ControlChannelWriter(stdout, control_fd=write_fd)

        writer.emit(NavigationResult.to("/repo/trees/feature-a"))

        assert stdout.getvalue() == "Navigate to: /repo/trees/feature-a\n"
        assert drain(read_fd, write_fd) == b""

    def test_show_command_prints_cd_on_stdout(self):
        stdout = io.StringIO()
        writer = ControlChannelWriter(stdout, show_command=True)
        writer.emit(NavigationResult.to("/repo/trees/feature-a"))
        assert stdout.getvalue() == "cd /repo/trees/feature-a\n"

    def test_from_environment(self):
        writer = ControlChannelWriter.from_environment(io.StringIO(), environ={"GWT_USE_FD3": "1"})
        assert writer.use_control_fd
        assert writer.control_fd == 3


class TestFormatCdLine:
    def test_plain_path_unquoted(self):
        assert format_cd_line("/repo/trees/feature-a") == "cd /repo/trees/feature-a\n"

    def test_path_with_spaces_is_quoted(self):
        assert format_cd_line("/tmp/my trees/x") == "cd '/tmp/my trees/x'\n"
