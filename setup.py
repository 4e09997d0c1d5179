"""Setup file for beadboard."""

from setuptools import setup, find_packages

setup(
    name="beadboard",
    version="0.1.0",
    description="Terminal dashboard for beads issue trees",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"beadboard.tui": ["styles.tcss"]},
    install_requires=[
        "click>=8.1.0",
        "pydantic>=2.0.0",
        "rich>=13.0.0",
        "textual>=0.47.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bu=beadboard.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
