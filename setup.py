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

from setuptools import setup, find_packages

ALL_PROGRAM_ENTRIES = ["ortpack = ortpack.cli:main"]

with open("README.md", "r") as f:
    long_description = f.read()

setup(
    name="ortpack",
    version="1.0.0",
    description="Build and package ONNX Runtime with CoreML as an Apple XCFramework.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="ortpack Project Authors",
    packages=find_packages(),
    include_package_data=True,
    package_data={"ortpack": ["templates/project/*"]},
    python_requires=">=3.8",
    install_requires=[
        "copier>=9.2.0",
        'tomli>=2.0.0; python_version < "3.11"',
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: Implementation :: CPython",
        "Operating System :: MacOS :: MacOS X",
        "Topic :: Software Development :: Build Tools",
    ],
    zip_safe=False,
    entry_points={"console_scripts": ALL_PROGRAM_ENTRIES},
)
