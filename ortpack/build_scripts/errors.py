#!/usr/bin/env python3
# -- coding: utf-8 --
#
# errors.py
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

"""Exceptions raised by the build and packaging stages."""

from enum import Enum


class PackError(Exception):
    """Base class for every pipeline failure"""

    stage = "pipeline"

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output or ""


class BuildError(PackError):
    """The external ONNX Runtime build script failed"""

    stage = "build"

    def __init__(self, platform_tag: str, exit_code: int, build_dir: str):
        super().__init__(
            f"Build for {platform_tag} failed with exit code {exit_code} (build dir: {build_dir})"
        )
        self.platform_tag = platform_tag
        self.exit_code = exit_code
        self.build_dir = build_dir


class NotFoundError(PackError):
    """No library matched in any candidate directory"""

    stage = "locate"

    def __init__(self, platform_tag: str, searched):
        self.platform_tag = platform_tag
        self.searched = list(searched)
        super().__init__(
            f"Could not find libonnxruntime for {platform_tag}\n"
            + "Searched in:\n"
            + "\n".join(f"  {path}" for path in self.searched)
        )


class CombineFailure(Enum):
    NO_INPUTS = "no_inputs"
    ARCHIVE_FAILED = "archive_failed"
    LINK_FAILED = "link_failed"


class CombineError(PackError):
    stage = "combine"

    def __init__(self, reason: CombineFailure, message: str, output: str = ""):
        super().__init__(message, output)
        self.reason = reason


class AssemblyError(PackError):
    stage = "assemble"


class PackageFailure(Enum):
    MISSING_BUNDLE = "missing_bundle"
    TOOL_FAILED = "tool_failed"


class PackageError(PackError):
    stage = "package"

    def __init__(self, reason: PackageFailure, message: str, output: str = "", bundle_tag: str = None):
        super().__init__(message, output)
        self.reason = reason
        self.bundle_tag = bundle_tag
