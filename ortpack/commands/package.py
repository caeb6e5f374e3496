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

from ortpack.build_scripts.artifacts import Bundle, LibraryKind
from ortpack.build_scripts.assembler import assemble
from ortpack.build_scripts.build_apple import print_integration_instructions, remove_previous_artifact
from ortpack.build_scripts.errors import NotFoundError, PackError
from ortpack.build_scripts.layout import OutputLayout
from ortpack.build_scripts.locator import (
    candidate_paths,
    expected_library,
    locate,
    located_with_acceleration,
)
from ortpack.build_scripts.packager import package
from ortpack.commands.build import report_failure
from ortpack.utils.config import (
    BuildConfiguration,
    PackSettings,
    load_pack_config,
    platform_targets,
)
from ortpack.utils.console import print_error, print_info, print_step, print_warning
from ortpack.utils.context.command import CliCommand
from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace


def assemble_from_existing_builds(settings: PackSettings, layout: OutputLayout,
                                  configuration: BuildConfiguration, runner=None):
    """
    Locate already built libraries and wrap each in a framework.

    The iOS simulator slice is optional; iOS device and macOS are required.
    """
    bundles = []
    for platform in platform_targets(settings):
        try:
            library = locate(
                configuration,
                platform,
                candidate_paths(layout, configuration, platform),
                expected=expected_library(layout, configuration, platform),
                library_name=settings.framework_name,
            )
        except NotFoundError as e:
            if platform.is_simulator:
                print_warning(f"{platform.display_name} library not found, continuing without it")
                continue
            raise

        static = "true" if library.kind is LibraryKind.STATIC else "false"
        print_info(f"{platform.display_name} library is static: {static}")
        bundles.append(assemble(
            library,
            platform,
            settings.header_source_dir,
            located_with_acceleration(layout, platform, library),
            layout.framework_dir(configuration, platform),
            settings,
            runner,
        ))
    return bundles


def existing_bundles(settings: PackSettings, layout: OutputLayout,
                     configuration: BuildConfiguration):
    """Describe the framework directories a previous run assembled."""
    bundles = []
    for platform in platform_targets(settings):
        framework_dir = layout.framework_dir(configuration, platform)
        if platform.is_simulator and not os.path.isdir(framework_dir):
            continue
        info_plist = os.path.join(framework_dir, "Info.plist")
        has_acceleration = False
        if os.path.isfile(info_plist):
            with open(info_plist, "r", encoding="utf-8") as f:
                has_acceleration = "<true/>" in f.read()
        headers_dir = os.path.join(framework_dir, "Headers")
        headers = tuple(sorted(os.listdir(headers_dir))) if os.path.isdir(headers_dir) else ()
        bundles.append(Bundle(
            platform=platform,
            path=framework_dir,
            binary_path=os.path.join(framework_dir, settings.framework_name),
            headers=headers,
            has_acceleration=has_acceleration,
        ))
    return bundles


class Package(CliCommand):
    def description(self) -> str:
        return """
        Create the ONNX Runtime XCFramework from existing builds.

        Searches the build directory for already built libraries (iOS device,
        iOS simulator, macOS), creates a framework for each and packages them
        into build/<Config>/frameworks/onnxruntime.xcframework.

        Examples:
            ortpack package                     # Release
            ortpack package Debug
            ortpack package --frameworks-only   # Reuse assembled frameworks
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ortpack package",
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
            "--frameworks-only",
            action="store_true",
            help="Package the frameworks already assembled in build/<Config>/frameworks",
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
            settings = load_pack_config(args.project_dir or context.project_dir)
        except ValueError as e:
            print_error(f"Error: {e}")
            sys.exit(1)

        layout = OutputLayout.from_settings(settings)
        print_step("Creating ONNX Runtime XCFramework from existing builds")
        print_info(f"Build configuration: {configuration.value}")
        remove_previous_artifact(layout, configuration)

        try:
            if args.frameworks_only:
                bundles = existing_bundles(settings, layout, configuration)
            else:
                os.makedirs(layout.frameworks_dir(configuration), exist_ok=True)
                bundles = assemble_from_existing_builds(settings, layout, configuration)
            artifact = package(
                bundles,
                layout.xcframework_path(configuration),
                configuration,
                build_info_path=layout.build_info_path(configuration),
            )
        except PackError as e:
            report_failure(e)
            sys.exit(1)

        print_integration_instructions(
            artifact,
            bundles_static=any(b.kind is LibraryKind.STATIC for b in bundles),
        )
