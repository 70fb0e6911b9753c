#!/usr/bin/env python3
"""
Setup script for the Compile Arguments MCP Server
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read requirements
requirements = (this_directory / "requirements.txt").read_text(encoding="utf-8").splitlines()
requirements = [r.strip() for r in requirements if r.strip() and not r.startswith("#")]

setup(
    name="compile-args-mcp",
    version="0.1.0",
    author="Compile Args MCP Contributors",
    description="Resolve per-file C/C++ compiler arguments from compile_commands.json or a directory listing, served over MCP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0", "pytest-asyncio>=0.21"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="mcp model-context-protocol c++ cpp clang compile_commands compilation-database",
    entry_points={
        "console_scripts": [
            "compile-args-mcp=compile_args_mcp.server:run",
        ],
    },
    include_package_data=True,
    package_data={
        "": ["*.json"],
    },
    zip_safe=False,
)
