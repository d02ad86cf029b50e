# setup.py
"""Setup script for Workflow Graph Runner."""

from setuptools import setup, find_packages

setup(
    name="workflow-graph-runner",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    include_package_data=True,
    package_data={
        "plugins": ["*/manifest.yaml"],
    },
    install_requires=[
        "click>=8.0",
        "pyyaml>=6.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "structlog>=23.0",
        "httpx>=0.24",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "black>=23.0",
            "flake8>=6.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "workflow=cli.main:cli",
            "wf=cli.main:cli",  # Short alias
        ],
    },
    python_requires=">=3.9",
)
