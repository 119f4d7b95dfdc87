from setuptools import find_packages, setup

setup(
    name="filelizard",
    version="0.1.0",
    description="A directory watch service that emails a notification for each change",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "watchdog",
        "click",
        "toml",
        "pyyaml",
        "python-daemon",
        "rich",
        "psutil"
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "filelizard=filelizard.cli:main"
        ]
    },
)
