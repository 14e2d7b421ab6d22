"""Tests for SubprocessRunner using short-lived Python child processes."""

import asyncio
import sys
import time

import pytest

from sitekeeper.infrastructure.subprocess_runner import (
    ChildOutputLimitExceeded,
    ChildTaskTimeout,
    SubprocessRunner,
)


def python(code):
    return [sys.executable, "-c", code]


class TestSubprocessRunner:
    def test_captures_output_and_exit_code(self):
        runner = SubprocessRunner(timeout=30)

        result = asyncio.run(runner.run(python(
            "import sys; print('hello'); print('oops', file=sys.stderr); sys.exit(3)"
        )))

        assert result.returncode == 3
        assert result.stdout.strip() == "hello"
        assert result.stderr.strip() == "oops"
        assert result.elapsed_secs >= 0

    def test_timeout_kills_child(self):
        runner = SubprocessRunner(timeout=0.5)
        started = time.monotonic()

        with pytest.raises(ChildTaskTimeout, match="timed out"):
            asyncio.run(runner.run(python("import time; time.sleep(30)")))

        assert time.monotonic() - started < 15

    def test_output_limit(self):
        runner = SubprocessRunner(timeout=30, max_output=1024)

        with pytest.raises(ChildOutputLimitExceeded, match="stdout exceeded 1024 bytes"):
            asyncio.run(runner.run(python(
                "import sys, time\n"
                "sys.stdout.write('x' * 200000); sys.stdout.flush()\n"
                "time.sleep(30)\n"
            )))

    def test_environment_is_passed_to_child(self):
        runner = SubprocessRunner(timeout=30, env={"GH_TOKEN": "abc", "PATH": ""})

        result = asyncio.run(runner.run(python("import os; print(os.environ.get('GH_TOKEN'))")))

        assert result.stdout.strip() == "abc"

    def test_missing_executable(self):
        runner = SubprocessRunner(timeout=5)

        with pytest.raises(FileNotFoundError):
            asyncio.run(runner.run(["/nonexistent/definitely-not-here"]))
