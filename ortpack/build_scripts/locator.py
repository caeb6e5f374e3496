#!/usr/bin/env python3
# -- coding: utf-8 --
#
# locator.py
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
Locate built ONNX Runtime libraries.

The ONNX Runtime build places its outputs in different sub directories
depending on generator (Xcode or Ninja), configuration and how the build
was started. A library is resolved in two steps:

1. the expected path for (configuration, platform), if it exists
2. a search through an ordered list of candidate directories, walking each
   whole subtree

The search itself is a pure function over a directory listing so it can be
exercised without touching the filesystem. Within one candidate directory
matches are ordered by their relative path, so the result does not depend on
filesystem enumeration order.
"""

import fnmatch
import os
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ortpack.build_scripts.artifacts import LibraryArtifact, LibraryKind
from ortpack.build_scripts.errors import NotFoundError
from ortpack.build_scripts.layout import (
    MACOS_ACCELERATED_DIR_NAME,
    MACOS_CPU_DIR_NAME,
    OutputLayout,
)
from ortpack.utils.config import BuildConfiguration, PlatformTarget
from ortpack.utils.console import print_info, print_success, print_warning

# Directory names whose content is never a deliverable library
EXCLUDED_DIR_SUFFIXES = (".dSYM",)
EXCLUDED_DIR_NAMES = ("CMakeFiles",)


def library_patterns(library_name: str = "onnxruntime") -> List[Tuple[str, LibraryKind]]:
    """File name patterns for the library, each tagged with the kind it denotes."""
    return [
        (f"lib{library_name}.a", LibraryKind.STATIC),
        (f"lib{library_name}.dylib", LibraryKind.DYNAMIC),
        (f"lib{library_name}.*.dylib", LibraryKind.DYNAMIC),
    ]


def is_excluded_path(relative_path: str) -> bool:
    parts = relative_path.replace("\\", "/").split("/")[:-1]
    for part in parts:
        if part in EXCLUDED_DIR_NAMES:
            return True
        if part.endswith(EXCLUDED_DIR_SUFFIXES):
            return True
    return False


def match_library(file_name: str, library_name: str = "onnxruntime") -> Optional[LibraryKind]:
    for pattern, kind in library_patterns(library_name):
        if fnmatch.fnmatchcase(file_name, pattern):
            return kind
    return None


def find_in_listing(
    candidate_paths: Sequence[str],
    listing: Dict[str, Iterable[str]],
    library_name: str = "onnxruntime",
) -> Optional[LibraryArtifact]:
    """
    Pick the library from a directory listing.

    Args:
        candidate_paths: Directories in priority order
        listing: Maps each existing candidate directory to the relative paths
            of all files in its subtree. Directories missing from the mapping
            are treated as non-existent.
        library_name: Library base name without the lib prefix

    Returns:
        LibraryArtifact or None when nothing matches
    """
    for candidate in candidate_paths:
        files = listing.get(candidate)
        if files is None:
            continue
        matches = []
        for relative_path in files:
            if is_excluded_path(relative_path):
                continue
            kind = match_library(os.path.basename(relative_path), library_name)
            if kind is not None:
                matches.append((relative_path.replace("\\", "/"), kind))
        if matches:
            relative_path, kind = sorted(matches)[0]
            return LibraryArtifact(os.path.join(candidate, relative_path), kind)
    return None


def list_tree(directory: str) -> List[str]:
    """Relative paths of every file under directory, skipping excluded dirs."""
    files = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = [
            d for d in dirnames
            if d not in EXCLUDED_DIR_NAMES and not d.endswith(EXCLUDED_DIR_SUFFIXES)
        ]
        for filename in filenames:
            full_path = os.path.join(dirpath, filename)
            files.append(os.path.relpath(full_path, directory))
    return sorted(files)


def locate(
    configuration: BuildConfiguration,
    platform: PlatformTarget,
    candidate_paths: Sequence[str],
    expected: Optional[LibraryArtifact] = None,
    library_name: str = "onnxruntime",
) -> LibraryArtifact:
    """
    Find the built library for one platform.

    Args:
        configuration: Build configuration the library was built with
        platform: Platform slice being located
        candidate_paths: Fallback search directories in priority order
        expected: Explicit expected location; used when the file exists
        library_name: Library base name without the lib prefix

    Returns:
        LibraryArtifact for the first match

    Raises:
        NotFoundError: when no candidate contains a match
    """
    print_info(f"Finding {platform.display_name} library ({configuration.value})...")

    if expected is not None and os.path.isfile(expected.path):
        print_success(f"Found {platform.display_name} library: {expected.path}")
        return expected

    listing = {}
    for candidate in candidate_paths:
        if os.path.isdir(candidate):
            print_info(f"  Searching in: {candidate}")
            listing[candidate] = list_tree(candidate)

    artifact = find_in_listing(candidate_paths, listing, library_name)
    if artifact is None:
        searched = ([expected.path] if expected is not None else []) + list(candidate_paths)
        raise NotFoundError(platform.tag, searched)

    print_success(f"Found {platform.display_name} library: {artifact.path}")
    return artifact


def expected_library(
    layout: OutputLayout,
    configuration: BuildConfiguration,
    platform: PlatformTarget,
    has_acceleration: bool = True,
) -> LibraryArtifact:
    """
    Where build.sh puts the library for (configuration, platform).

    iOS builds use the Xcode generator and produce static archives in
    <build_dir>/<Config>/<Config>-<sdk>; macOS builds the shared library in
    <build_dir>/<Config>.
    """
    config = configuration.value
    build_dir = layout.build_dir(configuration, platform, has_acceleration)
    name = layout.framework_name
    if platform.key == "macos":
        return LibraryArtifact(
            os.path.join(build_dir, config, f"lib{name}.dylib"), LibraryKind.DYNAMIC
        )
    return LibraryArtifact(
        os.path.join(build_dir, config, f"{config}-{platform.sdk}", f"lib{name}.a"),
        LibraryKind.STATIC,
    )


def candidate_paths(
    layout: OutputLayout,
    configuration: BuildConfiguration,
    platform: PlatformTarget,
) -> List[str]:
    """
    Fallback search directories, most likely first.

    Covers the layouts produced by earlier versions of the build scripts
    (build/iOS/..., build/MacOS/..., build/<Config>_clean/...).
    """
    root = layout.root
    config = configuration.value
    clean_root = os.path.join(root, f"{config}_clean")
    config_root = os.path.join(root, config)

    if platform.key == "ios":
        paths = [
            os.path.join(root, "iOS", config, "Release-iphoneos"),
            os.path.join(root, "iOS", config),
            os.path.join(config_root, "ios_device", config, f"{config}-iphoneos"),
            os.path.join(config_root, "ios_device", config),
            os.path.join(config_root, "ios_device"),
            os.path.join(clean_root, "ios_device", config),
            os.path.join(clean_root, "ios_device", f"{config}-iphoneos"),
            os.path.join(clean_root, "ios_device"),
        ]
    elif platform.key == "ios-simulator":
        paths = [
            os.path.join(config_root, "ios_simulator", config, f"{config}-iphonesimulator"),
            os.path.join(config_root, "ios_simulator", config),
            os.path.join(config_root, "ios_simulator"),
            os.path.join(config_root, "ios_simulator_arm64", config, f"{config}-iphonesimulator"),
            os.path.join(config_root, "ios_simulator_arm64", config),
            os.path.join(config_root, "ios_simulator_arm64"),
        ]
    elif platform.key == "macos":
        paths = [
            os.path.join(root, "MacOS", "RelWithDebInfo"),
            os.path.join(root, "MacOS", config),
        ]
        for base in (config_root, clean_root):
            for variant in (MACOS_ACCELERATED_DIR_NAME, MACOS_CPU_DIR_NAME):
                paths.append(os.path.join(base, variant, config))
                paths.append(os.path.join(base, variant))
    else:
        raise ValueError(f"Unknown platform: {platform.key}")

    # MacOS/RelWithDebInfo and MacOS/<Config> coincide for RelWithDebInfo
    unique = []
    for path in paths:
        if path not in unique:
            unique.append(path)
    return unique


def located_with_acceleration(layout: OutputLayout, platform: PlatformTarget,
                              artifact: LibraryArtifact) -> bool:
    """Whether a located library came from an accelerated build."""
    if not platform.supports_acceleration:
        return False
    relative = os.path.relpath(artifact.path, layout.root).replace("\\", "/")
    if MACOS_CPU_DIR_NAME in relative.split("/"):
        print_warning(f"{platform.display_name} library comes from a CPU-only build")
        return False
    return True
