"""
SPDX-License-Identifier: Apache-2.0
Copyright The containerd Authors.
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="nri-policy-validator",
        version="0.1.0",
        description="Policy validation of container adjustments made by NRI plugins",
        license="Apache-2.0",
        python_requires=">=3.9",
        packages=setuptools.find_packages(include=["nrivalidator", "nrivalidator.*"]),
        install_requires=[
            "pyyaml",
            "jsonschema",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "nri-validator = nrivalidator.cmd.nri_validator:main",
            ],
        },
    )
