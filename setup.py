from setuptools import setup, find_packages

setup(
    name="legacy-kms",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        # Inbox watcher
        "watchdog>=3.0",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "legacy-kms=legacy_kms.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Knowledge extraction and storage for legacy VB/SQL systems.",
)
