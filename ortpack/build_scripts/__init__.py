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

"""Build and packaging stages for the ONNX Runtime xcframework."""

__all__ = [
    "artifacts",
    "assembler",
    "build_apple",
    "combiner",
    "errors",
    "layout",
    "locator",
    "packager",
]
