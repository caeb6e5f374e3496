#!/usr/bin/env python3
# -- coding: utf-8 --
#
# build_apple.py
# ortpack
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

"""
ONNX Runtime XCFramework build pipeline.

Builds ONNX Runtime with its own build.sh for:
- iOS device (arm64) with CoreML
- iOS simulator (arm64) without CoreML
- macOS (arm64) with CoreML, falling back to a CPU-only build when the
  CoreML build or link fails

then combines each build's static archives into a dylib, wraps each dylib
in a framework bundle and packages the bundles into one XCFramework.

Output:
    - build/<Config>/frameworks/onnxruntime.xcframework
    - build/<Config>/frameworks/build_info.json
"""

import os
import shutil
import time
from typing import List, Tuple

from ortpack.build_scripts.artifacts import Bundle, DistributionArtifact, LibraryArtifact
from ortpack.build_scripts.assembler import assemble
from ortpack.build_scripts.combiner import collect_static_archives, combine
from ortpack.build_scripts.errors import BuildError, CombineError, PackError
from ortpack.build_scripts.layout import OutputLayout
from ortpack.build_scripts.packager import package
from ortpack.utils.cmd.cmd_util import exec_command
from ortpack.utils.config import (
    BuildConfiguration,
    PackSettings,
    PlatformTarget,
    ios_device_target,
    ios_simulator_target,
    macos_target,
)
from ortpack.utils.console import (
    print_error,
    print_info,
    print_step,
    print_success,
    print_warning,
)

COMBINE_WORK_DIR_NAME = "temp"


def build_script_command(settings: PackSettings, configuration: BuildConfiguration,
                         platform: PlatformTarget, build_dir: str,
                         has_acceleration: bool) -> List[str]:
    """Arguments for one ONNX Runtime build.sh invocation."""
    cmd = [settings.build_script_path, "--config", configuration.value]
    if platform.key == "macos":
        cmd += [
            "--build_shared_lib",
            "--parallel",
            "--compile_no_warning_as_error",
            "--skip_submodule_sync",
            "--cmake_extra_defines", f"CMAKE_OSX_ARCHITECTURES={platform.arch}",
        ]
    else:
        cmd += [
            "--use_xcode",
            "--ios",
            "--apple_sysroot", platform.sdk,
            "--osx_arch", platform.arch,
            "--apple_deploy_target", platform.min_os_version,
        ]
    if has_acceleration and platform.supports_acceleration:
        cmd.append("--use_coreml")
    cmd += ["--skip_tests", "--build_dir", build_dir]
    return cmd


def has_existing_build(build_dir: str, has_acceleration: bool) -> bool:
    """A previous build left the static archives the combiner needs."""
    if not os.path.isdir(build_dir):
        return False
    work_dir = os.path.join(build_dir, COMBINE_WORK_DIR_NAME)
    return bool(collect_static_archives(build_dir, has_acceleration, work_dir))


def run_native_build(settings: PackSettings, layout: OutputLayout,
                     configuration: BuildConfiguration, platform: PlatformTarget,
                     has_acceleration: bool, skip_existing: bool = False,
                     runner=None) -> str:
    """
    Run build.sh for one platform.

    Returns:
        str: the build directory

    Raises:
        BuildError: when build.sh exits non-zero
    """
    runner = runner or exec_command
    build_dir = layout.build_dir(configuration, platform, has_acceleration)
    variant = "with CoreML" if has_acceleration and platform.supports_acceleration else "without CoreML"

    if skip_existing and has_existing_build(build_dir, has_acceleration):
        print_info(f"Reusing existing {platform.display_name} build in {build_dir}")
        return build_dir

    print_step(f"Building for {platform.display_name} ({platform.arch}) {variant}")
    err_code, _ = runner(
        build_script_command(settings, configuration, platform, build_dir, has_acceleration),
        cwd=settings.project_dir,
        capture=False,
    )
    if err_code != 0:
        raise BuildError(platform.tag, err_code, build_dir)
    return build_dir


def build_and_combine(settings: PackSettings, layout: OutputLayout,
                      configuration: BuildConfiguration, platform: PlatformTarget,
                      has_acceleration: bool, skip_existing: bool = False,
                      runner=None) -> LibraryArtifact:
    build_dir = run_native_build(
        settings, layout, configuration, platform, has_acceleration, skip_existing, runner
    )
    work_dir = os.path.join(build_dir, COMBINE_WORK_DIR_NAME)
    archives = collect_static_archives(build_dir, has_acceleration, work_dir)
    print_info(f"Found {len(archives)} static libraries to combine")
    return combine(
        platform,
        archives,
        layout.combined_library_path(build_dir),
        work_dir,
        has_acceleration,
        install_name=settings.install_name,
        runner=runner,
    )


def build_macos_with_fallback(settings: PackSettings, layout: OutputLayout,
                              configuration: BuildConfiguration,
                              skip_existing: bool = False,
                              runner=None) -> Tuple[LibraryArtifact, bool]:
    """
    Build and combine macOS with CoreML, retrying once without it.

    Only the CPU build directory is removed before the retry; the CoreML
    build directory is kept for the next incremental attempt.

    Returns:
        tuple: (combined library, whether CoreML is included)
    """
    platform = macos_target(settings)

    print_warning("Attempting macOS build with CoreML...")
    try:
        library = build_and_combine(
            settings, layout, configuration, platform, True, skip_existing, runner
        )
        print_success("macOS build with CoreML successful")
        return library, True
    except (BuildError, CombineError) as e:
        print_warning(f"macOS build with CoreML failed, trying without CoreML... ({e})")
        if e.output:
            print(e.output)

    cpu_build_dir = layout.build_dir(configuration, platform, has_acceleration=False)
    if os.path.exists(cpu_build_dir):
        shutil.rmtree(cpu_build_dir)

    try:
        library = build_and_combine(
            settings, layout, configuration, platform, False, False, runner
        )
    except PackError:
        print_error("macOS build failed even without CoreML")
        raise
    print_warning("macOS build without CoreML successful (CPU only)")
    return library, False


def remove_previous_artifact(layout: OutputLayout, configuration: BuildConfiguration):
    """A failed run must not leave an older XCFramework looking current."""
    xcframework_path = layout.xcframework_path(configuration)
    if os.path.exists(xcframework_path):
        shutil.rmtree(xcframework_path)
    build_info_path = layout.build_info_path(configuration)
    if os.path.exists(build_info_path):
        os.remove(build_info_path)


def build_xcframework(settings: PackSettings, configuration: BuildConfiguration,
                      skip_existing: bool = False, runner=None) -> DistributionArtifact:
    """
    Run the whole pipeline for one configuration.

    Args:
        settings: Loaded project settings
        configuration: Build configuration
        skip_existing: Reuse platform builds that already have static archives
        runner: Callable(command, cwd=None, capture=True) -> (code, output)

    Returns:
        DistributionArtifact for the created XCFramework

    Raises:
        PackError: from the first failing stage
    """
    before_time = time.time()
    layout = OutputLayout.from_settings(settings)
    remove_previous_artifact(layout, configuration)
    os.makedirs(layout.frameworks_dir(configuration), exist_ok=True)

    bundles: List[Bundle] = []
    for platform in (ios_device_target(settings), ios_simulator_target(settings)):
        library = build_and_combine(
            settings, layout, configuration, platform,
            platform.supports_acceleration, skip_existing, runner,
        )
        bundles.append(assemble(
            library, platform, settings.header_source_dir, platform.supports_acceleration,
            layout.framework_dir(configuration, platform), settings, runner,
        ))

    platform = macos_target(settings)
    library, macos_has_coreml = build_macos_with_fallback(
        settings, layout, configuration, skip_existing, runner
    )
    bundles.append(assemble(
        library, platform, settings.header_source_dir, macos_has_coreml,
        layout.framework_dir(configuration, platform), settings, runner,
    ))

    print_step("Verifying frameworks and creating XCFramework")
    artifact = package(
        bundles,
        layout.xcframework_path(configuration),
        configuration,
        build_info_path=layout.build_info_path(configuration),
        runner=runner,
    )

    print(time.strftime("%Y-%m-%d %H:%M:%S", time.localtime()))
    print(f"use time: {int(time.time() - before_time)} s")
    return artifact


def print_integration_instructions(artifact: DistributionArtifact, bundles_static: bool = False):
    """Tell the user how to consume the XCFramework."""
    name = os.path.splitext(os.path.basename(artifact.path))[0]
    accelerated = [e.tag for e in artifact.entries if e.has_acceleration]

    print_step("Integration")
    print(f"1. Drag {os.path.basename(artifact.path)} to your Xcode project")
    print("2. Add to 'Frameworks, Libraries, and Embedded Content'")
    if bundles_static:
        print("3. Set to 'Do Not Embed' (static library)")
    else:
        print("3. Set to 'Embed & Sign' (dynamic library)")
    print("")
    print("Usage in code:")
    print(f"  #include <{name}/onnxruntime_cxx_api.h>")
    if not accelerated:
        print("")
        print("Note: this XCFramework is CPU only (no CoreML execution provider)")
        return
    print(f"  #include <{name}/coreml_provider_factory.h>  // {', '.join(accelerated)}")
    print("")
    print("CoreML setup:")
    print("  OrtSessionOptionsAppendExecutionProvider_CoreML(session_options, 0);")
    if not any(tag.startswith("macos") for tag in accelerated):
        print("")
        print("Note: macOS build uses CPU only due to CoreML build issues")
