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
import sys

from ortpack.build_scripts.build_apple import build_xcframework, print_integration_instructions
from ortpack.build_scripts.errors import PackError
from ortpack.utils.config import BuildConfiguration, load_pack_config
from ortpack.utils.console import print_error, print_info, print_step
from ortpack.utils.context.command import CliCommand
from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace


def report_failure(error: PackError):
    """Print the failing stage and the tool output verbatim."""
    print_error(f"[{error.stage}] {error}")
    if error.output:
        print(error.output, file=sys.stderr)


class Build(CliCommand):
    def description(self) -> str:
        return f"""Build ONNX Runtime XCFramework with CoreML for iOS device, iOS simulator and macOS.

Run from the root of an ONNX Runtime checkout (or pass --project-dir).

CONFIGURATIONS:
    Release         Optimized build (default)
    Debug           Debug build
    RelWithDebInfo  Release with debug info
    MinSizeRel      Minimal size build

FEATURES:
    - iOS device with CoreML hardware acceleration
    - iOS simulator (arm64) without CoreML
    - macOS with CoreML (or CPU fallback if CoreML fails)
    - Preserves previous builds to save time

To clean previous builds:
    ortpack clean --help    # See cleaning options
    ortpack clean --all     # Clean everything
    ortpack clean --ios     # Clean iOS builds only

Valid configurations: {', '.join(BuildConfiguration.names())}
"""

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ortpack build",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "config",
            nargs="?",
            default=BuildConfiguration.RELEASE.value,
            help="Build configuration (default: Release)",
        )
        parser.add_argument(
            "--skip-existing",
            action="store_true",
            help="Reuse platform build directories that already contain static libraries",
        )
        parser.add_argument(
            "--project-dir",
            default=None,
            help="ONNX Runtime checkout (default: current directory)",
        )
        args, unknown = parser.parse_known_args(
            self.command_argv(__file__, argv), namespace=CliNameSpace()
        )
        if unknown:
            print_error(f"Unknown option: {' '.join(unknown)}")
            print("Use --help for usage information")
            sys.exit(1)
        return args

    def exec(self, context: CliContext, args: CliNameSpace):
        try:
            configuration = BuildConfiguration.parse(args.config)
        except ValueError as e:
            print_error(f"Error: {e}")
            sys.exit(1)

        try:
            settings = load_pack_config(args.project_dir or context.project_dir)
        except ValueError as e:
            print_error(str(e))
            sys.exit(1)

        print_step("Building ONNX Runtime XCFramework with CoreML")
        print_info(f"Build configuration: {configuration.value}")
        print_info(f"iOS minimum version: {settings.ios_min_os_version}")
        print_info(f"macOS minimum version: {settings.macos_min_os_version}")
        print_info("Platforms: iOS device + iOS simulator + macOS")

        try:
            artifact = build_xcframework(settings, configuration, skip_existing=args.skip_existing)
        except PackError as e:
            report_failure(e)
            sys.exit(1)

        print_integration_instructions(artifact)
