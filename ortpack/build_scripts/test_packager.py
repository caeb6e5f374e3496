#!/usr/bin/env python3
"""
Tests for xcframework packaging.

Run with: python3 -m pytest test_packager.py
"""

import json
import os
import tempfile
import unittest
from unittest.mock import Mock

from ortpack.build_scripts.artifacts import Bundle
from ortpack.build_scripts.errors import PackageError, PackageFailure
from ortpack.build_scripts.packager import package, xcframework_command
from ortpack.utils.config import (
    BuildConfiguration,
    PackSettings,
    ios_device_target,
    ios_simulator_target,
    macos_target,
)


def make_bundle(root, platform, has_acceleration, size=64, with_binary=True):
    framework_dir = os.path.join(root, "frameworks", platform.tag, "onnxruntime.framework")
    os.makedirs(framework_dir, exist_ok=True)
    binary_path = os.path.join(framework_dir, "onnxruntime")
    if with_binary:
        with open(binary_path, "wb") as f:
            f.write(b"\0" * size)
    return Bundle(
        platform=platform,
        path=framework_dir,
        binary_path=binary_path,
        headers=("onnxruntime_c_api.h",),
        has_acceleration=has_acceleration,
    )


class FakeXcodebuild:
    def __init__(self, code=0, output=""):
        self.code = code
        self.output = output
        self.commands = []
        self.output_existed = None

    def __call__(self, command, cwd=None, capture=True):
        self.commands.append(list(command))
        output_path = command[command.index("-output") + 1]
        self.output_existed = os.path.exists(output_path)
        os.makedirs(output_path)
        return self.code, self.output


class TestPackage(unittest.TestCase):
    """Test package()."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = self.temp_dir.name
        settings = PackSettings(project_dir=self.root)
        self.device = ios_device_target(settings)
        self.simulator = ios_simulator_target(settings)
        self.macos = macos_target(settings)
        self.output_path = os.path.join(self.root, "frameworks", "onnxruntime.xcframework")
        self.build_info_path = os.path.join(self.root, "frameworks", "build_info.json")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_bundle_never_runs_tool(self):
        runner = Mock()
        bundles = [
            make_bundle(self.root, self.device, True),
            make_bundle(self.root, self.simulator, False, with_binary=False),
            make_bundle(self.root, self.macos, True),
        ]

        with self.assertRaises(PackageError) as context:
            package(bundles, self.output_path, BuildConfiguration.RELEASE, runner=runner)

        self.assertEqual(context.exception.reason, PackageFailure.MISSING_BUNDLE)
        self.assertEqual(context.exception.bundle_tag, "ios-arm64-simulator")
        runner.assert_not_called()
        self.assertFalse(os.path.exists(self.output_path))

    def test_no_bundles(self):
        runner = Mock()
        with self.assertRaises(PackageError) as context:
            package([], self.output_path, BuildConfiguration.RELEASE, runner=runner)
        self.assertEqual(context.exception.reason, PackageFailure.MISSING_BUNDLE)
        runner.assert_not_called()

    def test_three_platforms(self):
        bundles = [
            make_bundle(self.root, self.device, True, size=300),
            make_bundle(self.root, self.simulator, False, size=200),
            make_bundle(self.root, self.macos, True, size=100),
        ]
        os.makedirs(os.path.join(self.output_path, "stale"))
        runner = FakeXcodebuild()

        artifact = package(bundles, self.output_path, BuildConfiguration.RELEASE,
                           build_info_path=self.build_info_path, runner=runner)

        self.assertFalse(runner.output_existed)
        self.assertEqual(runner.commands[0], xcframework_command(bundles, self.output_path))
        self.assertEqual(artifact.path, self.output_path)
        self.assertEqual(artifact.platform_tags, ["ios-arm64", "ios-arm64-simulator", "macos-arm64"])
        self.assertEqual([e.binary_size for e in artifact.entries], [300, 200, 100])
        self.assertFalse(artifact.cpu_only)

        with open(self.build_info_path, "r", encoding="utf-8") as f:
            build_info = json.load(f)
        self.assertEqual(build_info["configuration"], "Release")
        self.assertEqual(build_info["xcframework"], "onnxruntime.xcframework")
        self.assertFalse(build_info["cpu_only"])
        self.assertEqual(len(build_info["platforms"]), 3)
        self.assertEqual(build_info["platforms"][2]["hardware_acceleration"], True)

    def test_tool_failure_leaves_no_artifact(self):
        bundles = [make_bundle(self.root, self.device, True)]
        runner = FakeXcodebuild(code=70, output="error: binaries with multiple platforms are not supported")

        with self.assertRaises(PackageError) as context:
            package(bundles, self.output_path, BuildConfiguration.DEBUG,
                    build_info_path=self.build_info_path, runner=runner)

        self.assertEqual(context.exception.reason, PackageFailure.TOOL_FAILED)
        self.assertEqual(context.exception.output,
                         "error: binaries with multiple platforms are not supported")
        self.assertFalse(os.path.exists(self.output_path))
        self.assertFalse(os.path.exists(self.build_info_path))

    def test_cpu_only_is_recorded(self):
        bundles = [
            make_bundle(self.root, self.device, False),
            make_bundle(self.root, self.simulator, False),
            make_bundle(self.root, self.macos, False),
        ]

        artifact = package(bundles, self.output_path, BuildConfiguration.RELEASE,
                           build_info_path=self.build_info_path, runner=FakeXcodebuild())

        self.assertTrue(artifact.cpu_only)
        with open(self.build_info_path, "r", encoding="utf-8") as f:
            self.assertTrue(json.load(f)["cpu_only"])

    def test_accelerated_simulator_alone_is_cpu_only(self):
        bundles = [
            make_bundle(self.root, self.device, False),
            make_bundle(self.root, self.simulator, True),
        ]
        artifact = package(bundles, self.output_path, BuildConfiguration.RELEASE,
                           runner=FakeXcodebuild())
        self.assertTrue(artifact.cpu_only)


if __name__ == "__main__":
    unittest.main()
