"""
Setup script for orkestra-executors
"""

from setuptools import setup, find_packages
import pathlib

HERE = pathlib.Path(__file__).parent
README = HERE / "README.md"

setup(
    name="orkestra-executors",
    version="0.1.0",
    description="Command, container, SSH and file task executors for the Orkestra workflow engine",
    long_description=README.read_text(encoding="utf-8") if README.exists() else "",
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "aiodocker>=0.21.0",
        "aiohttp>=3.9.0",
        "paramiko>=3.4.0",
        "psutil>=5.9.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "pyyaml>=6.0.1",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "orkestra-exec=orkestra_executors.cli.main:entry_point",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    keywords="workflow executor docker ssh subprocess",
)
