#
# Copyright 2024 ortpack Project Authors. All rights reserved.
# Use of this source code is governed by a MIT-style
# license that can be found at
#
# https://opensource.org/license/MIT
#
# The above copyright notice and this permission
# notice shall be included in all copies or
# substantial portions of the Software.

"""Colored console output shared by all commands and build stages."""

import os
import sys


class Colors:
    """ANSI color codes for terminal output."""
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def _use_color(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def colorize(message: str, color: str, stream=None) -> str:
    """Wrap message in color codes when the stream is a terminal."""
    stream = stream or sys.stdout
    if not _use_color(stream):
        return message
    return f"{color}{message}{Colors.ENDC}"


def print_step(message):
    """Print a step banner."""
    line = "=" * 70
    print("\n" + colorize(line, Colors.OKBLUE))
    print(colorize(f">>> {message}", Colors.OKBLUE + Colors.BOLD))
    print(colorize(line, Colors.OKBLUE) + "\n")


def print_info(message):
    print(message)


def print_command(command):
    """Echo an external command before running it."""
    if not isinstance(command, str):
        command = " ".join(str(part) for part in command)
    print(colorize(f"$ {command}", Colors.OKCYAN))


def print_success(message):
    """Print a success message."""
    print(colorize(f"✓ {message}", Colors.OKGREEN))


def print_warning(message):
    """Print a warning message."""
    print(colorize(f"⚠ {message}", Colors.WARNING))


def print_error(message):
    """Print an error message to stderr."""
    print(colorize(f"✗ {message}", Colors.FAIL, sys.stderr), file=sys.stderr)
