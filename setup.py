#!/usr/bin/env python

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

from setuptools import find_packages, setup

# Core dependencies required for all installations
install_requires = [
    "boto3>=1.38.36",  # DynamoDB stores, configuration table, CloudWatch metrics
    "PyMuPDF>=1.25.5",  # Text layer extraction from uploaded PDF documents
]

# Optional dependencies by component
extras_require = {
    # Testing dependencies
    "test": [
        "pytest>=7.4.0",
        "pytest-cov>=4.1.0",
        "pytest-xdist>=3.3.1",  # For parallel test execution
    ],
    # Development dependencies
    "dev": [
        "python-dotenv>=1.1.0,<2.0.0",
        "ipykernel>=6.29.5,<7.0.0",
    ],
    # Full package with all dependencies
    "all": [
        "pytest>=7.4.0",
        "pytest-cov>=4.1.0",
        "pytest-xdist>=3.3.1",
    ],
}

setup(
    name="vat_common",
    version="0.1.0",
    packages=find_packages(
        exclude=[
            "tests",
            "tests.*",
            "build",
            "build.*",
        ]
    ),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
)
