#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from setuptools import find_packages, setup

setup(
    name="vsphere-client",
    version="0.1.0",
    packages=find_packages(include=["vsphere_client", "vsphere_client.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.28",
        "urllib3>=1.26",
        "python-dateutil>=2.8",
        "pydantic>=2",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["vsphere-vm-info=vsphere_client.cli:main"]},
)
