#!/usr/bin/env python3
# -- coding: utf-8 --
#
# combiner.py
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
Combine the static archives of one ONNX Runtime build into a dylib.

A static ONNX Runtime build leaves dozens of archives behind
(libonnxruntime_*.a plus abseil, re2, protobuf and, with CoreML, the
generated coreml_proto). They are merged with libtool into one archive,
which is then force-loaded into a single dynamic library with clang++.
"""

import fnmatch
import os
import shutil
from typing import Iterable, List

from ortpack.build_scripts.artifacts import LibraryArtifact, LibraryKind
from ortpack.build_scripts.errors import CombineError, CombineFailure
from ortpack.utils.cmd.cmd_util import exec_command
from ortpack.utils.config import PlatformTarget
from ortpack.utils.console import print_info, print_success

STATIC_ARCHIVE_PATTERNS = [
    "libonnxruntime*.a",
    "libabsl*.a",
    "libre2*.a",
    "libprotobuf*.a",
]
ACCELERATION_ARCHIVE_PATTERNS = [
    "libcoreml_proto.a",
]
EXCLUDED_ARCHIVE_KEYWORDS = ("test", "protoc")

BASE_FRAMEWORKS = ["Accelerate", "Foundation"]
ACCELERATION_FRAMEWORK = "CoreML"

COMBINED_ARCHIVE_NAME = "combined.a"


def collect_static_archives(build_dir: str, has_acceleration: bool, work_dir: str = None) -> List[str]:
    """
    Find the static archives that make up one build.

    Args:
        build_dir: Native build directory to search (whole subtree)
        has_acceleration: Include the CoreML protobuf archive
        work_dir: Directory to skip (previous combine output)

    Returns:
        Sorted list of archive paths
    """
    patterns = list(STATIC_ARCHIVE_PATTERNS)
    if has_acceleration:
        patterns += ACCELERATION_ARCHIVE_PATTERNS

    skip_dir = os.path.abspath(work_dir) if work_dir else None
    libs = []
    for dirpath, dirnames, filenames in os.walk(build_dir):
        if skip_dir and os.path.commonpath([os.path.abspath(dirpath), skip_dir]) == skip_dir:
            continue
        for filename in filenames:
            if not any(fnmatch.fnmatchcase(filename, p) for p in patterns):
                continue
            full_path = os.path.join(dirpath, filename)
            relative_path = os.path.relpath(full_path, build_dir)
            if any(keyword in relative_path for keyword in EXCLUDED_ARCHIVE_KEYWORDS):
                continue
            libs.append(full_path)
    return sorted(libs)


def link_frameworks(platform: PlatformTarget, has_acceleration: bool) -> List[str]:
    frameworks = list(BASE_FRAMEWORKS)
    if has_acceleration and platform.supports_acceleration:
        frameworks.append(ACCELERATION_FRAMEWORK)
    return frameworks


def libtool_command(static_archives: Iterable[str], dst_lib: str) -> List[str]:
    return ["libtool", "-static", "-no_warning_for_no_symbols", "-o", dst_lib] + list(static_archives)


def link_command(platform: PlatformTarget, sdk_path: str, combined_archive: str,
                 output_path: str, has_acceleration: bool, install_name: str) -> List[str]:
    cmd = [
        "xcrun", "-sdk", platform.sdk, "clang++", "-dynamiclib",
        "-isysroot", sdk_path,
        "-arch", platform.arch,
        f"{platform.version_min_flag}={platform.min_os_version}",
        f"-Wl,-force_load,{combined_archive}",
    ]
    for framework in link_frameworks(platform, has_acceleration):
        cmd += ["-framework", framework]
    cmd += [
        "-lc++",
        "-install_name", install_name,
        "-o", output_path,
    ]
    return cmd


def combine(
    platform: PlatformTarget,
    static_archives: Iterable[str],
    output_path: str,
    work_dir: str,
    has_acceleration: bool,
    install_name: str = "@rpath/onnxruntime.framework/onnxruntime",
    runner=None,
) -> LibraryArtifact:
    """
    Merge static archives and link them into one dynamic library.

    Args:
        platform: Target slice; selects SDK, version flag and frameworks
        static_archives: Archives to merge, must not be empty
        output_path: Where the dylib is written
        work_dir: Scratch directory for the merged archive, removed on success
        has_acceleration: Link the CoreML framework when the platform allows it
        install_name: Install name baked into the dylib
        runner: Callable(command, cwd=None, capture=True) -> (code, output)

    Returns:
        LibraryArtifact of kind DYNAMIC

    Raises:
        CombineError: NO_INPUTS, ARCHIVE_FAILED or LINK_FAILED
    """
    runner = runner or exec_command
    static_archives = list(static_archives)
    if not static_archives:
        raise CombineError(
            CombineFailure.NO_INPUTS,
            f"No static libraries to combine for {platform.tag}",
        )

    print_info(f"Combining {len(static_archives)} static libraries for {platform.tag}...")
    os.makedirs(work_dir, exist_ok=True)
    combined_archive = os.path.join(work_dir, COMBINED_ARCHIVE_NAME)

    err_code, output = runner(libtool_command(static_archives, combined_archive))
    if err_code != 0 or not os.path.isfile(combined_archive):
        raise CombineError(
            CombineFailure.ARCHIVE_FAILED,
            f"Failed to create combined static library for {platform.tag}",
            output,
        )

    err_code, output = runner(["xcrun", "--sdk", platform.sdk, "--show-sdk-path"])
    if err_code != 0:
        raise CombineError(
            CombineFailure.LINK_FAILED,
            f"Could not resolve the {platform.sdk} SDK path",
            output,
        )
    sdk_path = output.strip()

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    if os.path.exists(output_path):
        os.remove(output_path)

    print_info(f"Creating dynamic library for {platform.tag}...")
    err_code, output = runner(
        link_command(platform, sdk_path, combined_archive, output_path, has_acceleration, install_name)
    )
    if err_code != 0 or not os.path.isfile(output_path):
        raise CombineError(
            CombineFailure.LINK_FAILED,
            f"Failed to create dynamic library for {platform.tag}",
            output,
        )

    shutil.rmtree(work_dir, ignore_errors=True)
    print_success(f"Successfully created dynamic library: {output_path}")
    return LibraryArtifact(output_path, LibraryKind.DYNAMIC)
