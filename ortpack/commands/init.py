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
import os
import sys

from copier import run_copy

from ortpack.utils.config import CONFIG_FILE_NAME
from ortpack.utils.console import print_error, print_success, print_warning
from ortpack.utils.context.command import CliCommand
from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace

TEMPLATE_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.realpath(__file__))), "templates", "project"
)


def parse_template_data(items) -> dict:
    """Turn repeated KEY=VALUE options into copier answers."""
    data = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Invalid --data value '{item}' (expected KEY=VALUE)")
        key, value = item.split("=", 1)
        data[key.strip()] = value
    return data


class Init(CliCommand):
    def description(self) -> str:
        return f"""
        Create {CONFIG_FILE_NAME} in the current ONNX Runtime checkout.

        By default, the command runs in non-interactive mode using default values
        (the stock ONNX Runtime layout). Use --interact to answer the prompts.

        Examples:
            ortpack init
            ortpack init --interact
            ortpack init --data ios_min_os_version=17.0
            ortpack init --data version=1.20.0 --data build_version=42 --force
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ortpack init",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "--data",
            action="append",
            help="Template data in KEY=VALUE format (can be used multiple times)",
        )
        parser.add_argument(
            "--interact",
            action="store_true",
            help="Enable interactive mode with prompts (default is non-interactive)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help=f"Overwrite an existing {CONFIG_FILE_NAME} without asking",
        )
        parser.add_argument(
            "--project-dir",
            default=None,
            help="ONNX Runtime checkout (default: current directory)",
        )
        args, unknown = parser.parse_known_args(
            self.command_argv(__file__, argv), namespace=CliNameSpace()
        )
        return args

    def exec(self, context: CliContext, args: CliNameSpace):
        project_dir = os.path.abspath(args.project_dir or context.project_dir)
        config_path = os.path.join(project_dir, CONFIG_FILE_NAME)

        try:
            data = parse_template_data(args.data)
        except ValueError as e:
            print_error(str(e))
            sys.exit(1)

        print(f"Initializing {CONFIG_FILE_NAME} in '{project_dir}'")

        if os.path.exists(config_path) and not args.force:
            print_warning(f"{CONFIG_FILE_NAME} already exists and will be overwritten.")
            response = input("\nDo you want to continue? (y/N): ")
            if response.lower() != "y":
                print("Aborted.")
                sys.exit(0)

        if not os.path.isfile(os.path.join(project_dir, "build.sh")):
            print_warning(f"build.sh not found in {project_dir}, is this an ONNX Runtime checkout?")

        run_copy(
            TEMPLATE_PATH,
            project_dir,
            data=data,
            defaults=not args.interact,
            overwrite=True,
        )

        print_success(f"Created {config_path}")
        print("\nNext steps:")
        print(f"  # Review {CONFIG_FILE_NAME}")
        print("  ortpack build Release")
