#!/usr/bin/env python3
# -- coding: utf-8 --
#
# layout.py
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
Output directory layout.

Everything lives under one root (build/ by default):

    build/<Config>/ios_device/               native build, iOS device
    build/<Config>/ios_simulator/            native build, iOS simulator
    build/<Config>/macos_coreml/             native build, macOS with CoreML
    build/<Config>/macos_cpu/                native build, macOS CPU fallback
    build/<Config>/frameworks/<tag>/onnxruntime.framework
    build/<Config>/frameworks/onnxruntime.xcframework
    build/<Config>/frameworks/build_info.json
"""

import os
from dataclasses import dataclass

from ortpack.utils.config import BuildConfiguration, PackSettings, PlatformTarget

BUILD_INFO_FILE = "build_info.json"
FRAMEWORKS_DIR_NAME = "frameworks"
MACOS_ACCELERATED_DIR_NAME = "macos_coreml"
MACOS_CPU_DIR_NAME = "macos_cpu"


@dataclass(frozen=True)
class OutputLayout:
    root: str
    framework_name: str = "onnxruntime"

    @classmethod
    def from_settings(cls, settings: PackSettings) -> "OutputLayout":
        return cls(root=settings.output_root, framework_name=settings.framework_name)

    def config_dir(self, configuration: BuildConfiguration) -> str:
        return os.path.join(self.root, configuration.value)

    def build_dir(self, configuration: BuildConfiguration, platform: PlatformTarget,
                  has_acceleration: bool = True) -> str:
        """Native build directory handed to build.sh --build_dir."""
        if platform.key == "macos":
            name = MACOS_ACCELERATED_DIR_NAME if has_acceleration else MACOS_CPU_DIR_NAME
        else:
            name = platform.build_dir_name
        return os.path.join(self.config_dir(configuration), name)

    def combined_library_path(self, build_dir: str) -> str:
        return os.path.join(build_dir, f"lib{self.framework_name}_combined.dylib")

    def frameworks_dir(self, configuration: BuildConfiguration) -> str:
        return os.path.join(self.config_dir(configuration), FRAMEWORKS_DIR_NAME)

    def framework_dir(self, configuration: BuildConfiguration, platform: PlatformTarget) -> str:
        return os.path.join(
            self.frameworks_dir(configuration), platform.tag, f"{self.framework_name}.framework"
        )

    def xcframework_path(self, configuration: BuildConfiguration) -> str:
        return os.path.join(self.frameworks_dir(configuration), f"{self.framework_name}.xcframework")

    def build_info_path(self, configuration: BuildConfiguration) -> str:
        return os.path.join(self.frameworks_dir(configuration), BUILD_INFO_FILE)
