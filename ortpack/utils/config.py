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
Configuration handling for ortpack.

Loads ortpack.toml from the ONNX Runtime checkout and exposes the build
configuration names and Apple platform targets as immutable values that
are passed explicitly to every stage.
"""

import os
import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from ortpack.utils.console import print_warning

if sys.version_info >= (3, 11, 0, "alpha", 7):
    import tomllib
else:
    import tomli as tomllib

CONFIG_FILE_NAME = "ortpack.toml"

DEFAULT_IOS_MIN_OS_VERSION = "16.4"
DEFAULT_MACOS_MIN_OS_VERSION = "13.3"


class BuildConfiguration(Enum):
    """CMake build configurations accepted by the ONNX Runtime build."""
    RELEASE = "Release"
    DEBUG = "Debug"
    REL_WITH_DEB_INFO = "RelWithDebInfo"
    MIN_SIZE_REL = "MinSizeRel"

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, name: str) -> "BuildConfiguration":
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(
            f"Invalid build configuration '{name}' "
            f"(expected one of: {', '.join(cls.names())})"
        )

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class PlatformTarget:
    """One slice of the xcframework."""
    key: str
    tag: str
    display_name: str
    sdk: str
    supported_platform: str
    version_min_flag: str
    min_os_version: str
    build_dir_name: str
    supports_acceleration: bool
    is_simulator: bool = False
    arch: str = "arm64"


@dataclass(frozen=True)
class PackSettings:
    """Values read from ortpack.toml."""
    project_dir: str
    framework_name: str = "onnxruntime"
    bundle_identifier: str = "com.microsoft.onnxruntime"
    version: str = "1.0"
    build_version: str = "1"
    output_dir: str = "build"
    build_script: str = "./build.sh"
    include_dir: str = "include/onnxruntime"
    ios_min_os_version: str = DEFAULT_IOS_MIN_OS_VERSION
    macos_min_os_version: str = DEFAULT_MACOS_MIN_OS_VERSION

    @property
    def output_root(self) -> str:
        return os.path.join(self.project_dir, self.output_dir)

    @property
    def header_source_dir(self) -> str:
        return os.path.join(self.project_dir, self.include_dir)

    @property
    def build_script_path(self) -> str:
        return os.path.join(self.project_dir, self.build_script)

    @property
    def install_name(self) -> str:
        return f"@rpath/{self.framework_name}.framework/{self.framework_name}"


def expand_env(value: Any) -> Any:
    """
    Expand environment variables in configuration values.

    Supports ${VAR_NAME} and $VAR_NAME syntax. Unknown variables are left
    untouched.
    """
    if not isinstance(value, str):
        return value

    pattern1 = re.compile(r'\$\{([^}]+)\}')
    value = pattern1.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)

    pattern2 = re.compile(r'\$([A-Za-z_][A-Za-z0-9_]*)')
    value = pattern2.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)

    return value


def _section(toml_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = toml_data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] in {CONFIG_FILE_NAME} must be a table")
    return section


def load_pack_config(project_dir: str = None) -> PackSettings:
    """
    Load configuration from ortpack.toml.

    Falls back to the defaults (the stock ONNX Runtime layout) when the file
    does not exist.

    Args:
        project_dir: ONNX Runtime checkout; defaults to the current directory

    Returns:
        PackSettings: immutable settings for this run

    Raises:
        ValueError: if the file exists but cannot be parsed
    """
    project_dir = os.path.abspath(project_dir or os.getcwd())
    config_file = os.path.join(project_dir, CONFIG_FILE_NAME)

    if not os.path.isfile(config_file):
        print_warning(f"{CONFIG_FILE_NAME} not found at {config_file}, using default configuration values")
        return PackSettings(project_dir=project_dir)

    try:
        with open(config_file, "rb") as f:
            toml_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Error reading {config_file}: {e}") from e

    project = _section(toml_data, "project")
    build = _section(toml_data, "build")
    ios = _section(toml_data, "ios")
    macos = _section(toml_data, "macos")

    defaults = PackSettings(project_dir=project_dir)
    return PackSettings(
        project_dir=project_dir,
        framework_name=expand_env(project.get("name", defaults.framework_name)),
        bundle_identifier=expand_env(project.get("bundle_identifier", defaults.bundle_identifier)),
        version=str(expand_env(project.get("version", defaults.version))),
        build_version=str(expand_env(project.get("build_version", defaults.build_version))),
        output_dir=expand_env(build.get("output_dir", defaults.output_dir)),
        build_script=expand_env(build.get("build_script", defaults.build_script)),
        include_dir=expand_env(build.get("include_dir", defaults.include_dir)),
        ios_min_os_version=str(expand_env(ios.get("min_os_version", defaults.ios_min_os_version))),
        macos_min_os_version=str(expand_env(macos.get("min_os_version", defaults.macos_min_os_version))),
    )


def ios_device_target(settings: PackSettings) -> PlatformTarget:
    return PlatformTarget(
        key="ios",
        tag="ios-arm64",
        display_name="iOS Device",
        sdk="iphoneos",
        supported_platform="iPhoneOS",
        version_min_flag="-mios-version-min",
        min_os_version=settings.ios_min_os_version,
        build_dir_name="ios_device",
        supports_acceleration=True,
    )


def ios_simulator_target(settings: PackSettings) -> PlatformTarget:
    return PlatformTarget(
        key="ios-simulator",
        tag="ios-arm64-simulator",
        display_name="iOS Simulator",
        sdk="iphonesimulator",
        supported_platform="iPhoneSimulator",
        version_min_flag="-mios-simulator-version-min",
        min_os_version=settings.ios_min_os_version,
        build_dir_name="ios_simulator",
        supports_acceleration=False,
        is_simulator=True,
    )


def macos_target(settings: PackSettings) -> PlatformTarget:
    return PlatformTarget(
        key="macos",
        tag="macos-arm64",
        display_name="macOS",
        sdk="macosx",
        supported_platform="MacOSX",
        version_min_flag="-mmacosx-version-min",
        min_os_version=settings.macos_min_os_version,
        build_dir_name="macos",
        supports_acceleration=True,
    )


def platform_targets(settings: PackSettings) -> List[PlatformTarget]:
    """All slices in xcframework order: device, simulator, macOS."""
    return [
        ios_device_target(settings),
        ios_simulator_target(settings),
        macos_target(settings),
    ]
