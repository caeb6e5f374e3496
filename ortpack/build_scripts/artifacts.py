#!/usr/bin/env python3
# -- coding: utf-8 --
#
# artifacts.py
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
Values passed between the pipeline stages.

Libraries, bundles and the final xcframework live on disk; these
dataclasses only describe them.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

from ortpack.utils.config import PlatformTarget

MODULE_MAP_RELATIVE_PATH = os.path.join("Modules", "module.modulemap")
HEADERS_DIR_NAME = "Headers"
INFO_PLIST_NAME = "Info.plist"

_MODULE_MAP_HEADER_PATTERN = re.compile(r'^\s*header\s+"([^"]+)"', re.MULTILINE)


class LibraryKind(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class LibraryArtifact:
    """A library file and how it was produced"""
    path: str
    kind: LibraryKind

    @property
    def is_static(self) -> bool:
        return self.kind is LibraryKind.STATIC


@dataclass(frozen=True)
class Bundle:
    """One assembled <name>.framework directory"""
    platform: PlatformTarget
    path: str
    binary_path: str
    headers: Tuple[str, ...]
    has_acceleration: bool
    kind: LibraryKind = LibraryKind.DYNAMIC

    @property
    def module_map_path(self) -> str:
        return os.path.join(self.path, MODULE_MAP_RELATIVE_PATH)

    @property
    def info_plist_path(self) -> str:
        return os.path.join(self.path, INFO_PLIST_NAME)

    def is_valid(self) -> bool:
        """The binary exists and every header named by the module map is present."""
        if not os.path.isfile(self.binary_path):
            return False
        if not os.path.isfile(self.module_map_path):
            return False
        with open(self.module_map_path, "r", encoding="utf-8") as f:
            referenced = referenced_headers(f.read())
        headers_dir = os.path.join(self.path, HEADERS_DIR_NAME)
        return all(os.path.isfile(os.path.join(headers_dir, h)) for h in referenced)


@dataclass(frozen=True)
class DistributionEntry:
    tag: str
    binary_path: str
    binary_size: int
    has_acceleration: bool


@dataclass(frozen=True)
class DistributionArtifact:
    """The packaged multi-platform xcframework"""
    path: str
    entries: List[DistributionEntry] = field(default_factory=list)
    cpu_only: bool = False

    @property
    def platform_tags(self) -> List[str]:
        return [entry.tag for entry in self.entries]


def referenced_headers(module_map_text: str) -> List[str]:
    """Header names listed by a module map, in order."""
    return _MODULE_MAP_HEADER_PATTERN.findall(module_map_text)


def format_size(size_bytes) -> str:
    """Format bytes to human-readable size"""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} TB"
