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
import glob
import os
import shutil
import sys

from ortpack.build_scripts.artifacts import format_size
from ortpack.utils.config import BuildConfiguration, load_pack_config
from ortpack.utils.console import Colors, colorize, print_error, print_success, print_warning
from ortpack.utils.context.command import CliCommand
from ortpack.utils.context.context import CliContext
from ortpack.utils.context.namespace import CliNameSpace

MENU_CHOICES = {
    "1": "all",
    "2": "ios",
    "3": "macos",
    "4": "frameworks",
    "5": "config",
    "6": "cancel",
}


class Clean(CliCommand):
    def description(self) -> str:
        return """
        Clean ONNX Runtime build artifacts selectively or completely.

        Without a selection flag an interactive menu asks what to clean.
        Confirmation is always requested unless --yes is given.

        Examples:
            ortpack clean                        # Interactive mode - choose what to clean
            ortpack clean --all                  # Clean everything
            ortpack clean --ios --config Release # Clean only iOS Release builds
            ortpack clean --frameworks           # Clean only framework outputs
            ortpack clean --all --dry-run        # Preview what will be cleaned
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ortpack clean",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "-a", "--all",
            action="store_true",
            help="Clean all build artifacts",
        )
        parser.add_argument(
            "-i", "--ios",
            action="store_true",
            help="Clean iOS builds only",
        )
        parser.add_argument(
            "-m", "--macos",
            action="store_true",
            help="Clean macOS builds only",
        )
        parser.add_argument(
            "-f", "--frameworks",
            action="store_true",
            help="Clean framework outputs only",
        )
        parser.add_argument(
            "-c", "--config",
            default=None,
            help="Clean specific config (Release, Debug, etc.)",
        )
        parser.add_argument(
            "-y", "--yes",
            action="store_true",
            help="Skip confirmation prompts",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be cleaned without actually deleting",
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
            settings = load_pack_config(args.project_dir or context.project_dir)
        except ValueError as e:
            print_error(str(e))
            sys.exit(1)

        print(colorize("ONNX Runtime Build Cleaner", Colors.OKBLUE))
        print(f"Current directory: {settings.project_dir}")

        cleaner = BuildCleaner(settings.output_root, dry_run=args.dry_run, skip_confirm=args.yes)
        if not (args.all or args.ios or args.macos or args.frameworks or args.config):
            choice = cleaner.choose_from_menu()
            if choice == "cancel":
                print("Cancelled")
                sys.exit(0)
            if choice is None:
                print_error("Invalid choice")
                sys.exit(1)
            if choice == "config":
                args.config = cleaner.choose_config()
            else:
                setattr(args, choice, True)

        if args.config is not None:
            # the name becomes a path below the output root
            try:
                args.config = BuildConfiguration.parse(args.config).value
            except ValueError as e:
                print_error(f"Error: {e}")
                sys.exit(1)

        cleaner.print_plan(args.all, args.ios, args.macos, args.frameworks, args.config)
        if not cleaner.confirm_clean():
            print("Cancelled")
            sys.exit(0)

        print(colorize("Starting cleanup...", Colors.WARNING))
        cleaner.clean(args.all, args.ios, args.macos, args.frameworks, args.config)
        cleaner.print_summary()


class BuildCleaner:
    def __init__(self, output_root, dry_run=False, skip_confirm=False):
        self.output_root = output_root
        self.dry_run = dry_run
        self.skip_confirm = skip_confirm
        self.cleaned_paths = []
        self.cleaned_size = 0
        self.failed_paths = []

    def get_size(self, path):
        """Get total size of a file or directory in bytes"""
        if os.path.isfile(path):
            return os.path.getsize(path)
        total_size = 0
        for dirpath, dirnames, filenames in os.walk(path):
            for filename in filenames:
                filepath = os.path.join(dirpath, filename)
                if not os.path.islink(filepath):
                    total_size += os.path.getsize(filepath)
        return total_size

    def display_name(self, path):
        return os.path.relpath(path, os.path.dirname(self.output_root))

    def remove_path(self, path):
        """Remove a file or directory and track the result"""
        if not os.path.lexists(path):
            return False

        size = self.get_size(path)
        name = self.display_name(path)

        if self.dry_run:
            print(f"  [DRY RUN] Would remove: {name} ({format_size(size)})")
            self.cleaned_paths.append(name)
            return True

        print(colorize(f"Removing {name}...", Colors.WARNING))
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError as e:
            self.failed_paths.append((name, str(e)))
            print_error(f"Failed to remove {name}: {e}")
            return False
        self.cleaned_paths.append(name)
        self.cleaned_size += size
        print_success(f"Removed {name}")
        return True

    def existing_configs(self):
        if not os.path.isdir(self.output_root):
            return []
        return sorted(
            name for name in os.listdir(self.output_root)
            if any(config in name for config in BuildConfiguration.names())
        )

    def choose_from_menu(self):
        """
        Ask what to clean.

        Returns:
            str: one of all/ios/macos/frameworks/config/cancel, or None for
            an invalid choice
        """
        print("")
        print(colorize("What would you like to clean?", Colors.WARNING))
        print("1) Everything (complete clean)")
        print("2) iOS builds only")
        print("3) macOS builds only")
        print("4) Framework outputs only")
        print("5) Specific configuration")
        print("6) Cancel")
        print("")
        return MENU_CHOICES.get(input("Choose an option (1-6): ").strip())

    def choose_config(self):
        print("")
        print("Available configurations in build directory:")
        configs = self.existing_configs()
        if configs:
            for name in configs:
                print(name)
        else:
            print("No build configurations found")
        print("")
        return input("Enter configuration name to clean: ").strip()

    def print_plan(self, clean_all, ios, macos, frameworks, config):
        print("")
        print(colorize("Cleanup Plan:", Colors.WARNING))
        if clean_all:
            print(f"- Remove entire {os.path.basename(self.output_root)}/ directory")
            print("- This will clean ALL platforms, configurations, and frameworks")
            size = format_size(self.get_size(self.output_root)) if os.path.isdir(self.output_root) else "unknown"
            print(f"- Current build directory size: {size}")
            print("")
            return

        scope = f"Config: {config}" if config else "All configurations"
        if ios:
            print("- Remove iOS builds")
            print(f"  - {scope}")
        if macos:
            print("- Remove macOS builds")
            print(f"  - {scope}")
        if frameworks:
            print("- Remove framework outputs")
            print(f"  - {scope}")
        if config and not (ios or macos or frameworks):
            print(f"- Remove all builds for configuration: {config}")
        print("")

    def confirm_clean(self):
        """Ask user for confirmation"""
        if self.skip_confirm or self.dry_run:
            return True
        print(colorize("Warning: This action cannot be undone!", Colors.FAIL))
        print("")
        response = input("Do you want to proceed? (y/N): ").strip().lower()
        return response in ['y', 'yes']

    def matching_dirs(self, search_root, keyword):
        """Directories below search_root whose name contains keyword (case-insensitive)."""
        matches = []
        if not os.path.isdir(search_root):
            return matches
        for dirpath, dirnames, filenames in os.walk(search_root):
            kept = []
            for dir_name in sorted(dirnames):
                if keyword in dir_name.lower():
                    matches.append(os.path.join(dirpath, dir_name))
                else:
                    kept.append(dir_name)
            dirnames[:] = kept
        return matches

    def framework_outputs(self, search_root):
        matches = []
        if not os.path.isdir(search_root):
            return matches
        for dirpath, dirnames, filenames in os.walk(search_root):
            kept = []
            for name in sorted(dirnames):
                if name.endswith(".xcframework") or "frameworks" in name or "xcframework_output" in name:
                    matches.append(os.path.join(dirpath, name))
                else:
                    kept.append(name)
            dirnames[:] = kept
        return matches

    def clean(self, clean_all=False, ios=False, macos=False, frameworks=False, config=None):
        """
        Remove the selected outputs.

        With only a config every build/<config> and build/<config>_* entry
        goes; combined with a platform flag the platform search is limited
        to build/<config>.
        """
        if clean_all:
            if os.path.isdir(self.output_root):
                print(colorize("Removing entire build directory...", Colors.WARNING))
                self.remove_path(self.output_root)
            else:
                print("No build directory found")
            return

        if config and not (ios or macos or frameworks):
            base = os.path.join(self.output_root, config)
            for path in [base] + sorted(glob.glob(f"{glob.escape(base)}_*")):
                self.remove_path(path)
        else:
            search_root = os.path.join(self.output_root, config) if config else self.output_root
            if ios:
                print(colorize("Cleaning iOS builds...", Colors.WARNING))
                for path in self.matching_dirs(search_root, "ios"):
                    self.remove_path(path)
            if macos:
                print(colorize("Cleaning macOS builds...", Colors.WARNING))
                for path in self.matching_dirs(search_root, "macos"):
                    self.remove_path(path)
            if frameworks:
                print(colorize("Cleaning framework outputs...", Colors.WARNING))
                for path in self.framework_outputs(search_root):
                    self.remove_path(path)

        if not self.cleaned_paths and not self.failed_paths:
            print("Nothing to clean (no matching build artifacts found)")

    def print_summary(self):
        """Print summary of cleaning operation"""
        print("")
        if self.dry_run:
            print("  [DRY RUN MODE - No files were actually deleted]")
        else:
            print_success("Cleanup completed!")
            if self.cleaned_paths:
                print(f"Total space freed: {format_size(self.cleaned_size)}")

        if self.failed_paths:
            print_warning(f"Failed to clean {len(self.failed_paths)} paths:")
            for name, error in self.failed_paths:
                print(f"     - {name}: {error}")

        if os.path.isdir(self.output_root):
            print("")
            print(colorize("Remaining in build directory:", Colors.WARNING))
            remaining = sorted(os.listdir(self.output_root))
            for name in remaining:
                print(f"  {name}")
            if not remaining:
                print("Build directory is empty")
            print(f"Build directory size: {format_size(self.get_size(self.output_root))}")
        else:
            print("Build directory removed completely")
