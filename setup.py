"""Setup configuration for teampulse"""

from setuptools import setup, find_packages

setup(
    name="teampulse",
    version="0.1.0",
    description=(
        "CLI tool for engineering activity snapshots: GitHub and Jira metrics "
        "with period-over-period trend insights."
    ),
    author="teampulse Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "teampulse=teampulse.main:main",
        ],
    },
)
