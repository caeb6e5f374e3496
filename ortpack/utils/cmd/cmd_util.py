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

import subprocess

from ortpack.utils.console import print_command


def decode_bytes(data: bytes) -> str:
    """Decode tool output, falling back to latin-1 for non UTF-8 bytes."""
    try:
        return bytes.decode(data, "UTF-8")
    except UnicodeDecodeError:
        return bytes.decode(data, "latin-1")


def exec_command(command, cwd=None, capture=True):
    """
    Run an external tool and wait for it to finish.

    There is no timeout: a hung tool blocks the caller.

    Args:
        command: Argument list (or a shell string) to execute
        cwd: Working directory for the tool
        capture: When True, stdout and stderr are captured together and
            returned. When False, the tool writes straight to the terminal.

    Returns:
        tuple: (exit_code, output) where output is "" when not captured
    """
    print_command(command)
    shell = isinstance(command, str)
    if not capture:
        err_code = subprocess.call(command, shell=shell, cwd=cwd)
        return err_code, ""

    compile_popen = subprocess.Popen(
        command,
        shell=shell,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    stdout, _ = compile_popen.communicate()
    err_code = compile_popen.returncode
    err_msg = decode_bytes(stdout or b"")
    return err_code, err_msg
