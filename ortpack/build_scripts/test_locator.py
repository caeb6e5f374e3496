#!/usr/bin/env python3
"""
Tests for the library locator.

Run with: python3 -m pytest test_locator.py
"""

import os
import tempfile
import unittest

from ortpack.build_scripts.artifacts import LibraryArtifact, LibraryKind
from ortpack.build_scripts.errors import NotFoundError
from ortpack.build_scripts.layout import OutputLayout
from ortpack.build_scripts.locator import (
    candidate_paths,
    expected_library,
    find_in_listing,
    is_excluded_path,
    locate,
    located_with_acceleration,
    match_library,
)
from ortpack.utils.config import (
    BuildConfiguration,
    PackSettings,
    ios_device_target,
    ios_simulator_target,
    macos_target,
    platform_targets,
)


def touch(path, content=b"lib"):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
    return path


class TestFindInListing(unittest.TestCase):
    """Test the pure search over a directory listing."""

    def test_first_candidate_with_a_match_wins(self):
        listing = {
            "/b/first": ["Release/libonnxruntime.a"],
            "/b/second": ["libonnxruntime.a"],
        }
        artifact = find_in_listing(["/b/missing", "/b/first", "/b/second"], listing)
        self.assertEqual(artifact.path, os.path.join("/b/first", "Release/libonnxruntime.a"))
        self.assertEqual(artifact.kind, LibraryKind.STATIC)

    def test_tie_break_is_lexicographic(self):
        listing = {"/b": ["z/libonnxruntime.a", "a/libonnxruntime.a", "m/libonnxruntime.dylib"]}
        artifact = find_in_listing(["/b"], listing)
        self.assertEqual(artifact.path, os.path.join("/b", "a/libonnxruntime.a"))

        reversed_listing = {"/b": list(reversed(listing["/b"]))}
        self.assertEqual(find_in_listing(["/b"], reversed_listing), artifact)

    def test_debug_symbols_and_cmake_files_are_excluded(self):
        listing = {
            "/b": [
                "Release/libonnxruntime.dylib.dSYM/Contents/Resources/DWARF/libonnxruntime.dylib",
                "CMakeFiles/onnxruntime.dir/libonnxruntime.a",
                "Release/libonnxruntime.1.20.0.dylib",
            ]
        }
        artifact = find_in_listing(["/b"], listing)
        self.assertEqual(artifact.path, os.path.join("/b", "Release/libonnxruntime.1.20.0.dylib"))
        self.assertEqual(artifact.kind, LibraryKind.DYNAMIC)

    def test_no_match_returns_none(self):
        listing = {"/b": ["libonnxruntime_session.a", "libother.dylib"]}
        self.assertIsNone(find_in_listing(["/b", "/c"], listing))

    def test_match_library_kinds(self):
        self.assertEqual(match_library("libonnxruntime.a"), LibraryKind.STATIC)
        self.assertEqual(match_library("libonnxruntime.dylib"), LibraryKind.DYNAMIC)
        self.assertEqual(match_library("libonnxruntime.1.20.0.dylib"), LibraryKind.DYNAMIC)
        self.assertIsNone(match_library("libonnxruntime_common.a"))
        self.assertIsNone(match_library("libonnxruntime.a.txt"))

    def test_is_excluded_path(self):
        self.assertTrue(is_excluded_path("x.dSYM/libonnxruntime.dylib"))
        self.assertTrue(is_excluded_path("a/CMakeFiles/b/libonnxruntime.a"))
        self.assertFalse(is_excluded_path("Release/libonnxruntime.a"))
        # the file name itself is never a directory component
        self.assertFalse(is_excluded_path("CMakeFiles"))


class TestLocate(unittest.TestCase):
    """Test locate() against real directory trees."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = self.temp_dir.name
        self.settings = PackSettings(project_dir=self.root)
        self.layout = OutputLayout(root=os.path.join(self.root, "build"))

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_single_match_found_for_every_configuration(self):
        for configuration in BuildConfiguration:
            for platform in platform_targets(self.settings):
                with self.subTest(configuration=configuration.value, platform=platform.tag):
                    with tempfile.TemporaryDirectory() as root:
                        layout = OutputLayout(root=root)
                        candidates = candidate_paths(layout, configuration, platform)
                        library = touch(os.path.join(candidates[-1], "nested", "libonnxruntime.a"))

                        artifact = locate(configuration, platform, candidates)

                        self.assertEqual(os.path.normpath(artifact.path), os.path.normpath(library))
                        self.assertEqual(artifact.kind, LibraryKind.STATIC)

    def test_not_found_when_no_candidate_matches(self):
        platform = ios_device_target(self.settings)
        candidates = candidate_paths(self.layout, BuildConfiguration.RELEASE, platform)
        touch(os.path.join(candidates[0], "libunrelated.a"))

        with self.assertRaises(NotFoundError) as context:
            locate(BuildConfiguration.RELEASE, platform, candidates)

        self.assertEqual(context.exception.platform_tag, "ios-arm64")
        self.assertEqual(context.exception.searched, candidates)
        self.assertIn(candidates[0], str(context.exception))

    def test_expected_path_takes_precedence(self):
        platform = macos_target(self.settings)
        configuration = BuildConfiguration.DEBUG
        expected = expected_library(self.layout, configuration, platform)
        touch(expected.path)
        candidates = candidate_paths(self.layout, configuration, platform)
        touch(os.path.join(candidates[0], "libonnxruntime.dylib"))

        artifact = locate(configuration, platform, candidates, expected=expected)

        self.assertEqual(artifact, expected)

    def test_missing_expected_path_falls_back_to_search(self):
        platform = ios_simulator_target(self.settings)
        configuration = BuildConfiguration.RELEASE
        expected = expected_library(self.layout, configuration, platform)
        candidates = candidate_paths(self.layout, configuration, platform)
        library = touch(os.path.join(candidates[1], "libonnxruntime.a"))

        artifact = locate(configuration, platform, candidates, expected=expected)

        self.assertEqual(os.path.normpath(artifact.path), os.path.normpath(library))

    def test_expected_library_paths(self):
        ios = expected_library(self.layout, BuildConfiguration.RELEASE, ios_device_target(self.settings))
        self.assertEqual(
            ios,
            LibraryArtifact(
                os.path.join(self.layout.root, "Release", "ios_device", "Release",
                             "Release-iphoneos", "libonnxruntime.a"),
                LibraryKind.STATIC,
            ),
        )
        macos_cpu = expected_library(
            self.layout, BuildConfiguration.DEBUG, macos_target(self.settings), has_acceleration=False
        )
        self.assertEqual(
            macos_cpu.path,
            os.path.join(self.layout.root, "Debug", "macos_cpu", "Debug", "libonnxruntime.dylib"),
        )
        self.assertEqual(macos_cpu.kind, LibraryKind.DYNAMIC)

    def test_candidate_paths_are_unique(self):
        platform = macos_target(self.settings)
        candidates = candidate_paths(self.layout, BuildConfiguration.REL_WITH_DEB_INFO, platform)
        self.assertEqual(len(candidates), len(set(candidates)))
        self.assertEqual(candidates[0], os.path.join(self.layout.root, "MacOS", "RelWithDebInfo"))

    def test_located_with_acceleration(self):
        macos = macos_target(self.settings)
        coreml = LibraryArtifact(
            os.path.join(self.layout.root, "Release", "macos_coreml", "Release", "libonnxruntime.dylib"),
            LibraryKind.DYNAMIC,
        )
        cpu = LibraryArtifact(
            os.path.join(self.layout.root, "Release", "macos_cpu", "Release", "libonnxruntime.dylib"),
            LibraryKind.DYNAMIC,
        )
        self.assertTrue(located_with_acceleration(self.layout, macos, coreml))
        self.assertFalse(located_with_acceleration(self.layout, macos, cpu))
        self.assertFalse(
            located_with_acceleration(self.layout, ios_simulator_target(self.settings), coreml)
        )


if __name__ == "__main__":
    unittest.main()
