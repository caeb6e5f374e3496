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

import argparse
import importlib
import os
import sys

from ortpack.utils.context.command import CliCommand
from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace

SCRIPT_PATH = os.path.split(os.path.realpath(__file__))[0]
PACKAGE_NAME = os.path.basename(SCRIPT_PATH)


# Root Class for Command Line Interface
class Cli(CliCommand):
    def description(self) -> str:
        return """ortpack - ONNX Runtime XCFramework packager

Builds ONNX Runtime for iOS device, iOS simulator and macOS (arm64) with
CoreML and packages the result as onnxruntime.xcframework.

USAGE:
    ortpack <command> [options]

COMMANDS:
    init        Create ortpack.toml in the ONNX Runtime checkout
    build       Build all platforms and create the XCFramework
    package     Create the XCFramework from existing builds
    clean       Clean build artifacts

EXAMPLES:
    ortpack build                    # Release build
    ortpack build Debug              # Debug build
    ortpack package Release          # Package existing builds
    ortpack clean --ios --config Release

For more information on a specific command:
    ortpack <command> --help
        """

    def get_command_list(self) -> list:
        arr = []
        for command in os.listdir(os.path.join(SCRIPT_PATH, "commands")):
            if not command.startswith("_") and not command.startswith("test_") and command.endswith(".py"):
                arr.append(os.path.splitext(os.path.basename(command))[0])
        return sorted(arr)

    def parser(self, add_help=True) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="ortpack",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
            add_help=add_help,
        )
        parser.add_argument(
            "subcommand",
            metavar=f"{self.get_command_list()}",
            type=str,
            nargs="?",
            choices=self.get_command_list(),
        )
        return parser

    def cli(self, argv=None) -> CliNameSpace:
        argv = list(sys.argv[1:] if argv is None else argv)
        # ortpack --help, but not ortpack build --help
        if len(argv) == 1 and argv[0] in ["--help", "-h"]:
            self.parser().print_help()
            sys.exit(0)

        # parse only known args - this will NOT consume --help if present
        args, unknown = self.parser(add_help=False).parse_known_args(
            argv[:1], namespace=CliNameSpace()
        )
        args.command_argv = argv[1:]
        return args

    def exec(self, context: CliContext, args: CliNameSpace):
        if not args.subcommand:
            print("ERROR: No command specified\n")
            self.parser().print_help()
            sys.exit(1)

        module = importlib.import_module(f"{PACKAGE_NAME}.commands.{args.subcommand}")
        klass = getattr(module, args.subcommand.capitalize())
        sub_cmd = klass()
        sub_cmd.exec(context, sub_cmd.cli(args.command_argv))


def main():
    cmd = Cli()
    cmd.exec(CliContext(), cmd.cli())


if __name__ == "__main__":
    main()
