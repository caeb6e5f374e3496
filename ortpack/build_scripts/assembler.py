#!/usr/bin/env python3
# -- coding: utf-8 --
#
# assembler.py
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
Assemble a per-platform onnxruntime.framework bundle.

Layout of the bundle:

    onnxruntime.framework/
        onnxruntime                 the library binary
        Headers/                    public C/C++ API headers
        Modules/module.modulemap    clang module description
        Info.plist                  bundle metadata

Consumers (Xcode, SwiftPM, CocoaPods) read the module map and Info.plist
keys literally, so both are produced from fixed templates.
"""

import os
import shutil
from typing import List, Tuple

from ortpack.build_scripts.artifacts import (
    HEADERS_DIR_NAME,
    INFO_PLIST_NAME,
    MODULE_MAP_RELATIVE_PATH,
    Bundle,
    LibraryArtifact,
    LibraryKind,
)
from ortpack.build_scripts.errors import AssemblyError
from ortpack.utils.cmd.cmd_util import exec_command
from ortpack.utils.config import PackSettings, PlatformTarget
from ortpack.utils.console import print_info, print_success, print_warning

# Paths are relative to the header source dir (include/onnxruntime)
REQUIRED_HEADERS = [
    "core/session/onnxruntime_c_api.h",
    "core/session/onnxruntime_cxx_api.h",
    "core/session/onnxruntime_cxx_inline.h",
]
OPTIONAL_HEADERS = [
    "core/session/onnxruntime_float16.h",
    "core/session/onnxruntime_ep_c_api.h",
]
ACCELERATION_HEADER = "core/providers/coreml/coreml_provider_factory.h"

INFO_PLIST_ACCELERATION_KEY = "ORTHardwareAcceleration"


def render_module_map(framework_name: str, headers: List[str], has_acceleration: bool) -> str:
    """Module map text; headers are bare file names in Headers/."""
    lines = [f"framework module {framework_name} {{"]
    for header in headers:
        lines.append(f'    header "{header}"')
    lines.append("    ")
    lines.append('    link "c++"')
    lines.append('    link framework "Accelerate"')
    if has_acceleration:
        lines.append('    link framework "CoreML"')
    lines.append('    link framework "Foundation"')
    lines.append("    ")
    lines.append("    export *")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_info_plist(settings: PackSettings, platform: PlatformTarget, has_acceleration: bool) -> str:
    name = settings.framework_name
    acceleration = "<true/>" if has_acceleration else "<false/>"
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleDevelopmentRegion</key>
    <string>en</string>
    <key>CFBundleExecutable</key>
    <string>{name}</string>
    <key>CFBundleIdentifier</key>
    <string>{settings.bundle_identifier}</string>
    <key>CFBundleInfoDictionaryVersion</key>
    <string>6.0</string>
    <key>CFBundleName</key>
    <string>{name}</string>
    <key>CFBundlePackageType</key>
    <string>FMWK</string>
    <key>CFBundleShortVersionString</key>
    <string>{settings.version}</string>
    <key>CFBundleVersion</key>
    <string>{settings.build_version}</string>
    <key>MinimumOSVersion</key>
    <string>{platform.min_os_version}</string>
    <key>CFBundleSupportedPlatforms</key>
    <array>
        <string>{platform.supported_platform}</string>
    </array>
    <key>{INFO_PLIST_ACCELERATION_KEY}</key>
    {acceleration}
</dict>
</plist>
"""


def select_headers(header_source_dir: str, has_acceleration: bool) -> Tuple[List[str], bool]:
    """
    Decide which headers go into the bundle.

    Returns:
        tuple: (header source paths, has_acceleration). has_acceleration is
        downgraded to False when the CoreML header is missing.

    Raises:
        AssemblyError: when a required header is missing
    """
    missing = [
        h for h in REQUIRED_HEADERS
        if not os.path.isfile(os.path.join(header_source_dir, h))
    ]
    if missing:
        raise AssemblyError(
            f"Headers not found in {header_source_dir}: {', '.join(missing)}"
        )

    sources = [os.path.join(header_source_dir, h) for h in REQUIRED_HEADERS]
    for header in OPTIONAL_HEADERS:
        path = os.path.join(header_source_dir, header)
        if os.path.isfile(path):
            sources.append(path)
        else:
            print_warning(f"{os.path.basename(header)} not found, skipping")

    if has_acceleration:
        path = os.path.join(header_source_dir, ACCELERATION_HEADER)
        if os.path.isfile(path):
            sources.append(path)
        else:
            print_warning("CoreML header not found - packaging without CoreML support")
            has_acceleration = False

    return sources, has_acceleration


def assemble(
    library: LibraryArtifact,
    platform: PlatformTarget,
    header_source_dir: str,
    has_acceleration: bool,
    framework_dir: str,
    settings: PackSettings,
    runner=None,
) -> Bundle:
    """
    Create the framework bundle for one platform.

    Any existing bundle at framework_dir is removed first. Running this twice
    with the same inputs yields identical descriptor files.

    Args:
        library: Binary to package (combined dylib or located library)
        platform: Target slice
        header_source_dir: include/onnxruntime directory of the checkout
        has_acceleration: Request CoreML support in the bundle
        framework_dir: Destination <name>.framework directory
        settings: Project settings (names, identifiers, versions)
        runner: Callable(command, cwd=None, capture=True) -> (code, output)

    Returns:
        Bundle describing the assembled framework

    Raises:
        AssemblyError: on missing inputs or install name failure
    """
    runner = runner or exec_command
    has_acceleration = has_acceleration and platform.supports_acceleration

    print_info(f"Creating framework for {platform.tag} (CoreML: {str(has_acceleration).lower()})...")

    header_sources, has_acceleration = select_headers(header_source_dir, has_acceleration)
    if not os.path.isfile(library.path):
        raise AssemblyError(f"Library not found: {library.path}")

    if os.path.exists(framework_dir):
        shutil.rmtree(framework_dir)
    headers_dir = os.path.join(framework_dir, HEADERS_DIR_NAME)
    os.makedirs(headers_dir)
    os.makedirs(os.path.dirname(os.path.join(framework_dir, MODULE_MAP_RELATIVE_PATH)))

    binary_path = os.path.join(framework_dir, settings.framework_name)
    shutil.copy(library.path, binary_path)

    if library.kind is LibraryKind.DYNAMIC:
        err_code, output = runner(["install_name_tool", "-id", settings.install_name, binary_path])
        if err_code != 0:
            shutil.rmtree(framework_dir, ignore_errors=True)
            raise AssemblyError(f"Failed to set install name for {binary_path}", output)

    header_names = []
    for source in header_sources:
        shutil.copy(source, headers_dir)
        header_names.append(os.path.basename(source))

    with open(os.path.join(framework_dir, MODULE_MAP_RELATIVE_PATH), "w", encoding="utf-8") as f:
        f.write(render_module_map(settings.framework_name, header_names, has_acceleration))

    with open(os.path.join(framework_dir, INFO_PLIST_NAME), "w", encoding="utf-8") as f:
        f.write(render_info_plist(settings, platform, has_acceleration))

    print_success(f"Framework created: {framework_dir}")
    return Bundle(
        platform=platform,
        path=framework_dir,
        binary_path=binary_path,
        headers=tuple(header_names),
        has_acceleration=has_acceleration,
        kind=library.kind,
    )
