import re
from pathlib import Path

from setuptools import setup

__version__ = re.search(
    r'^__version__ = "([^"]+)"',
    (Path(__file__).parent / "tidelog" / "__init__.py").read_text(),
    re.M,
).group(1)

setup(
    name="tidelog",
    long_description="tidelog is a leveled logging library with colorized console output, "
    "daily rotating file sinks and an ASGI access log middleware.",
    version=__version__,
    packages=[
        "tidelog",
    ],
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "click>=8.0.3,<9.0.0",
        "pyyaml>=6.0.0,<7.0.0",
        "humanfriendly>=10.0.0,<11.0.0",
    ],
    extras_require={
        "tests": [
            "pytest>=7.0.0",
        ],
    },
)
