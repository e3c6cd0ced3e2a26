# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT

from setuptools import setup

extras_require = {
    "dev": [
        "absl-py",
        "mypy",
        "pre-commit",
        "pytest-mypy",
        "pytest-timeout>=1.3.0",
        "pytest>=7.0.0",
    ],
}

all_require = []
for extra_require in extras_require.values():
    all_require.extend(extra_require)

extras_require["all"] = all_require


setup(
    extras_require=extras_require,
)
