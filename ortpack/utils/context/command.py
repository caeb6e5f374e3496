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

import os
import sys

from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace


# Base class of every ortpack command
class CliCommand:
    def description(self) -> str:
        raise NotImplementedError

    def cli(self, argv=None) -> CliNameSpace:
        raise NotImplementedError

    def exec(self, context: CliContext, args: CliNameSpace):
        raise NotImplementedError

    def command_argv(self, module_file, argv=None) -> list:
        """Return the arguments after the subcommand name."""
        if argv is not None:
            return list(argv)
        module_name = os.path.splitext(os.path.basename(module_file))[0]
        input_argv = list(sys.argv[1:])
        if input_argv and input_argv[0] == module_name:
            input_argv = input_argv[1:]
        return input_argv
