#!/usr/bin/env python3
# -- coding: utf-8 --
#
# packager.py
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
Package per-platform framework bundles into one XCFramework.
"""

import json
import os
import platform as host_platform
import shutil
from datetime import datetime
from typing import Sequence

from ortpack.build_scripts.artifacts import (
    Bundle,
    DistributionArtifact,
    DistributionEntry,
    format_size,
)
from ortpack.build_scripts.errors import PackageError, PackageFailure
from ortpack.utils.cmd.cmd_util import exec_command
from ortpack.utils.config import BuildConfiguration
from ortpack.utils.console import print_info, print_success, print_warning


def verify_bundles(bundles: Sequence[Bundle]):
    """
    Fail fast before xcodebuild sees a missing framework binary.

    Raises:
        PackageError: MISSING_BUNDLE naming the first missing platform
    """
    if not bundles:
        raise PackageError(PackageFailure.MISSING_BUNDLE, "No frameworks to package")
    for bundle in bundles:
        if not os.path.isfile(bundle.binary_path):
            raise PackageError(
                PackageFailure.MISSING_BUNDLE,
                f"{bundle.platform.display_name} framework binary not found: {bundle.binary_path}",
                bundle_tag=bundle.platform.tag,
            )


def has_accelerated_device_bundle(bundles: Sequence[Bundle]) -> bool:
    return any(b.has_acceleration and not b.platform.is_simulator for b in bundles)


def xcframework_command(bundles: Sequence[Bundle], output_path: str):
    cmd = ["xcodebuild", "-create-xcframework"]
    for bundle in bundles:
        cmd += ["-framework", bundle.path]
    cmd += ["-output", output_path]
    return cmd


def packaged_binary_path(output_path: str, bundle: Bundle) -> str:
    """Location of a bundle's binary inside the XCFramework, if xcodebuild kept our tags."""
    framework_name = os.path.basename(bundle.path)
    candidate = os.path.join(
        output_path, bundle.platform.tag, framework_name, os.path.basename(bundle.binary_path)
    )
    if os.path.isfile(candidate):
        return candidate
    return bundle.binary_path


def generate_build_info(project_name: str, configuration: BuildConfiguration,
                        artifact: DistributionArtifact) -> dict:
    """build_info.json content describing what was packaged."""
    return {
        "project": project_name,
        "configuration": configuration.value,
        "xcframework": os.path.basename(artifact.path),
        "build_time": datetime.now().isoformat(),
        "build_host": host_platform.system(),
        "cpu_only": artifact.cpu_only,
        "platforms": [
            {
                "tag": entry.tag,
                "binary_size": entry.binary_size,
                "hardware_acceleration": entry.has_acceleration,
            }
            for entry in artifact.entries
        ],
    }


def package(
    bundles: Sequence[Bundle],
    output_path: str,
    configuration: BuildConfiguration,
    build_info_path: str = None,
    runner=None,
) -> DistributionArtifact:
    """
    Create the XCFramework from assembled bundles.

    Args:
        bundles: One bundle per platform, in xcframework order
        output_path: Destination .xcframework path, replaced if it exists
        configuration: Build configuration, recorded in build_info.json
        build_info_path: Where to write build_info.json (skipped if None)
        runner: Callable(command, cwd=None, capture=True) -> (code, output)

    Returns:
        DistributionArtifact with one entry per bundle

    Raises:
        PackageError: MISSING_BUNDLE before xcodebuild runs, TOOL_FAILED
            when xcodebuild exits non-zero
    """
    runner = runner or exec_command
    bundles = list(bundles)
    verify_bundles(bundles)

    cpu_only = not has_accelerated_device_bundle(bundles)
    if cpu_only:
        print_warning("No device framework has CoreML, packaging a CPU-only XCFramework")

    if os.path.exists(output_path):
        shutil.rmtree(output_path)
    if build_info_path and os.path.exists(build_info_path):
        os.remove(build_info_path)

    print_info("Creating XCFramework...")
    err_code, output = runner(xcframework_command(bundles, output_path))
    if err_code != 0:
        shutil.rmtree(output_path, ignore_errors=True)
        raise PackageError(PackageFailure.TOOL_FAILED, "XCFramework creation failed", output)

    entries = []
    for bundle in bundles:
        binary_path = packaged_binary_path(output_path, bundle)
        entries.append(DistributionEntry(
            tag=bundle.platform.tag,
            binary_path=binary_path,
            binary_size=os.path.getsize(binary_path),
            has_acceleration=bundle.has_acceleration,
        ))
    artifact = DistributionArtifact(path=output_path, entries=entries, cpu_only=cpu_only)

    print_success("XCFramework created!")
    print_info(f"Location: {output_path}")
    print_info("Binary sizes:")
    for entry in entries:
        print_info(f"  {entry.tag}: {format_size(entry.binary_size)} ({entry.binary_path})")

    if build_info_path:
        project_name = os.path.splitext(os.path.basename(output_path))[0]
        with open(build_info_path, "w", encoding="utf-8") as f:
            json.dump(generate_build_info(project_name, configuration, artifact), f, indent=2)
        print_info(f"Build info: {build_info_path}")

    return artifact
