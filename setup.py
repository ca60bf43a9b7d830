"""Settings for building package."""

from setuptools import find_packages, setup

from xml_validator import __author__, __title__, __version__

with open("requirements.txt") as reqs:
    requirements = reqs.read().splitlines()

setup(
    # There are some restrictions on what makes a valid project name
    # specification here:
    # https://packaging.python.org/specifications/core-metadata/#name
    name="xml_validator",
    # Versions should comply with PEP 440:
    # https://www.python.org/dev/peps/pep-0440/
    version=__version__,
    # This is a one-line description or tagline of what your project does. This
    # corresponds to the "Summary" metadata field:
    # https://packaging.python.org/specifications/core-metadata/#summary
    description=__title__,
    author=__author__,
    classifiers=["License :: OSI Approved :: MIT License"],
    python_requires=">=3.10",
    # Instead of listing each package manually, we can use find_packages() to
    # automatically discover all packages and subpackages.
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    extras_require={
        "test": ["coverage>=7.0", "pytest>=7.0", "pytest-cov>=4.0"],
        "docs": ["sphinx >= 1.4", "sphinx_rtd_theme"],
        "compact": ["rnc2rng>=2.6"],
    },
    entry_points={"console_scripts": ["xml_validator=xml_validator.cli:main"]},
)
