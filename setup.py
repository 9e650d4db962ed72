import os

from setuptools import find_packages, setup

PROJECT_ROOT = os.path.dirname(os.path.realpath(__file__))
README_FILE = os.path.join(PROJECT_ROOT, "README.md")
VERSION_FILE = os.path.join(PROJECT_ROOT, "phits", "version.py")
REQUIREMENTS_FILE = os.path.join(PROJECT_ROOT, "requirements.txt")


def get_long_description():
    with open(README_FILE, encoding="utf-8") as f:
        return f.read()


# get version
with open(VERSION_FILE, encoding="utf-8") as f:
    exec(f.read())

with open(REQUIREMENTS_FILE) as f:
    install_reqs = [line for line in f.read().splitlines() if line.strip()]

setup(
    name="phits",
    version=__version__,  # noqa: F821
    description="Poisson interrupted time series analysis of public health "
    "interventions",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    license="Apache License 2.0",
    packages=find_packages(exclude=["tests", "test_*", "scripts"]),
    package_data={"phits": ["data/*.csv"]},
    python_requires=">=3.10",
    install_requires=install_reqs,
    extras_require={"test": ["pytest", "pytest-cov"]},
)
