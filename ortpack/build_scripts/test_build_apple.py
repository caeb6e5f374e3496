#!/usr/bin/env python3
"""
Tests for the XCFramework build pipeline.

External tools are replaced by FakeTools, which creates the files each tool
would produce.

Run with: python3 -m pytest test_build_apple.py
"""

import os
import tempfile
import unittest

from ortpack.build_scripts.assembler import ACCELERATION_HEADER, OPTIONAL_HEADERS, REQUIRED_HEADERS
from ortpack.build_scripts.build_apple import build_script_command, build_xcframework
from ortpack.build_scripts.errors import BuildError
from ortpack.build_scripts.layout import OutputLayout
from ortpack.utils.config import (
    BuildConfiguration,
    PackSettings,
    ios_device_target,
    ios_simulator_target,
    macos_target,
)


def touch(path, content=b"x"):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
    return path


class FakeTools:
    """build.sh, libtool, xcrun, install_name_tool and xcodebuild."""

    def __init__(self, fail_macos_coreml_link=False, fail_macos_build=False):
        self.fail_macos_coreml_link = fail_macos_coreml_link
        self.fail_macos_build = fail_macos_build
        self.commands = []

    def __call__(self, command, cwd=None, capture=True):
        command = list(command)
        self.commands.append(command)
        if command[0].endswith("build.sh"):
            if self.fail_macos_build and "--build_shared_lib" in command:
                return 1, ""
            build_dir = command[command.index("--build_dir") + 1]
            touch(os.path.join(build_dir, "Release", "libonnxruntime_session.a"))
            touch(os.path.join(build_dir, "_deps", "libabsl_base.a"))
            if "--use_coreml" in command:
                touch(os.path.join(build_dir, "coreml", "libcoreml_proto.a"))
            return 0, ""
        if command[0] == "libtool":
            touch(command[command.index("-o") + 1])
            return 0, ""
        if "--show-sdk-path" in command:
            return 0, "/sdk\n"
        if "clang++" in command:
            if self.fail_macos_coreml_link and "macosx" in command and "CoreML" in command:
                return 1, "ld: framework not found CoreML"
            touch(command[command.index("-o") + 1], b"dylib-" + command[2].encode())
            return 0, ""
        if command[0] == "install_name_tool":
            return 0, ""
        if command[0] == "xcodebuild":
            os.makedirs(command[command.index("-output") + 1])
            return 0, ""
        raise AssertionError(f"unexpected command: {command}")

    def build_script_calls(self):
        return [c for c in self.commands if c[0].endswith("build.sh")]


class TestBuildXCFramework(unittest.TestCase):
    """Test build_xcframework()."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = self.temp_dir.name
        self.settings = PackSettings(project_dir=self.root)
        for header in REQUIRED_HEADERS + OPTIONAL_HEADERS + [ACCELERATION_HEADER]:
            touch(os.path.join(self.settings.header_source_dir, header))
        self.layout = OutputLayout.from_settings(self.settings)
        self.configuration = BuildConfiguration.RELEASE

    def tearDown(self):
        self.temp_dir.cleanup()

    def info_plist(self, platform):
        path = os.path.join(self.layout.framework_dir(self.configuration, platform), "Info.plist")
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def test_all_platforms_accelerated(self):
        tools = FakeTools()

        artifact = build_xcframework(self.settings, self.configuration, runner=tools)

        self.assertEqual(artifact.platform_tags, ["ios-arm64", "ios-arm64-simulator", "macos-arm64"])
        self.assertEqual([e.has_acceleration for e in artifact.entries], [True, False, True])
        self.assertFalse(artifact.cpu_only)
        self.assertTrue(os.path.isdir(self.layout.xcframework_path(self.configuration)))
        self.assertTrue(os.path.isfile(self.layout.build_info_path(self.configuration)))
        self.assertEqual(len(tools.build_script_calls()), 3)
        for command in tools.build_script_calls():
            self.assertEqual(command[1:3], ["--config", "Release"])

    def test_macos_falls_back_to_cpu_when_coreml_link_fails(self):
        macos = macos_target(self.settings)
        coreml_dir = self.layout.build_dir(self.configuration, macos, has_acceleration=True)
        cpu_dir = self.layout.build_dir(self.configuration, macos, has_acceleration=False)
        stale = touch(os.path.join(cpu_dir, "stale.o"))
        tools = FakeTools(fail_macos_coreml_link=True)

        artifact = build_xcframework(self.settings, self.configuration, runner=tools)

        self.assertEqual(len(artifact.entries), 3)
        self.assertFalse(artifact.entries[2].has_acceleration)
        self.assertFalse(artifact.cpu_only)
        self.assertIn("<key>ORTHardwareAcceleration</key>\n    <false/>", self.info_plist(macos))
        self.assertIn("<true/>", self.info_plist(ios_device_target(self.settings)))

        macos_builds = [c for c in tools.build_script_calls() if "--build_shared_lib" in c]
        self.assertEqual(len(macos_builds), 2)
        self.assertIn("--use_coreml", macos_builds[0])
        self.assertNotIn("--use_coreml", macos_builds[1])
        self.assertEqual(macos_builds[1][macos_builds[1].index("--build_dir") + 1], cpu_dir)
        # only the CPU variant is wiped before the retry
        self.assertFalse(os.path.exists(stale))
        self.assertTrue(os.path.isdir(coreml_dir))

    def test_failed_fallback_is_fatal_and_leaves_no_artifact(self):
        os.makedirs(self.layout.xcframework_path(self.configuration))
        tools = FakeTools(fail_macos_build=True)

        with self.assertRaises(BuildError) as context:
            build_xcframework(self.settings, self.configuration, runner=tools)

        self.assertEqual(context.exception.platform_tag, "macos-arm64")
        self.assertFalse(os.path.exists(self.layout.xcframework_path(self.configuration)))
        self.assertFalse(any(c[0] == "xcodebuild" for c in tools.commands))

    def test_skip_existing_reuses_previous_builds(self):
        device = ios_device_target(self.settings)
        device_dir = self.layout.build_dir(self.configuration, device)
        touch(os.path.join(device_dir, "Release", "libonnxruntime_session.a"))
        tools = FakeTools()

        build_xcframework(self.settings, self.configuration, skip_existing=True, runner=tools)

        built = [c[c.index("--build_dir") + 1] for c in tools.build_script_calls()]
        self.assertNotIn(device_dir, built)
        self.assertEqual(len(built), 2)


class TestBuildScriptCommand(unittest.TestCase):
    """Test build.sh arguments per platform."""

    def setUp(self):
        self.settings = PackSettings(project_dir="/src/onnxruntime")

    def test_ios_device(self):
        cmd = build_script_command(self.settings, BuildConfiguration.DEBUG,
                                   ios_device_target(self.settings), "/b", True)
        self.assertEqual(cmd[0], os.path.join("/src/onnxruntime", "./build.sh"))
        self.assertEqual(cmd[1:3], ["--config", "Debug"])
        self.assertIn("--use_xcode", cmd)
        self.assertEqual(cmd[cmd.index("--apple_sysroot") + 1], "iphoneos")
        self.assertEqual(cmd[cmd.index("--apple_deploy_target") + 1], "16.4")
        self.assertIn("--use_coreml", cmd)
        self.assertEqual(cmd[-3:], ["--skip_tests", "--build_dir", "/b"])

    def test_ios_simulator_never_uses_coreml(self):
        cmd = build_script_command(self.settings, BuildConfiguration.RELEASE,
                                   ios_simulator_target(self.settings), "/b", True)
        self.assertEqual(cmd[cmd.index("--apple_sysroot") + 1], "iphonesimulator")
        self.assertNotIn("--use_coreml", cmd)

    def test_macos(self):
        cmd = build_script_command(self.settings, BuildConfiguration.RELEASE,
                                   macos_target(self.settings), "/b", False)
        self.assertIn("--build_shared_lib", cmd)
        self.assertIn("CMAKE_OSX_ARCHITECTURES=arm64", cmd)
        self.assertNotIn("--apple_deploy_target", cmd)
        self.assertNotIn("--use_coreml", cmd)


if __name__ == "__main__":
    unittest.main()
