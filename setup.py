#!/usr/bin/env python
# -*- encoding: utf-8 -*-

"""Setup Module for Covenant"""

import io
import re

from os.path import dirname, join

from setuptools import find_packages, setup


def read(*names, **kwargs):
    """Helper method to read files"""
    return io.open(
        join(dirname(__file__), *names),
        encoding=kwargs.get("encoding", "utf8"),
    ).read()


marshmallow_requires = ["marshmallow>=3.15.0"]

# Flask runs async views through asgiref, pulled in by the `async` extra
flask_requires = ["flask[async]>=2.2.0"]
fastapi_requires = ["fastapi>=0.100.0", "starlette>=0.27.0"]

install_requires = marshmallow_requires + [
    "inflection>=0.5.1",
    "rich>=13.0.0",
    "typer>=0.9.0",
    "typing_extensions>=4.5.0",
    "werkzeug>=2.2.0",
]

all_external_requires = flask_requires + fastapi_requires

testing_requires = all_external_requires + [
    "flask-cors>=4.0.0",
    "httpx>=0.24.0",
    "mock==5.1.0",
    "pytest-asyncio>=0.21.1",
    "pytest-cov>=4.1.0",
    "pytest-mock==3.12.0",
    "pytest>=7.4.3",
]

dev_requires = testing_requires + [
    "black>=23.11.0",
    "coverage>=7.3.2",
    "isort>=5.12.0",
    "nox>=2023.4.22",
    "pre-commit>=2.16.0",
    "tox>=4.11.3",
    "twine>=4.0.2",
]

setup(
    name="covenant",
    version="0.1.0",
    license="BSD 3-Clause License",
    description="Contract-first RPC procedures served as Flask and FastAPI routes",
    long_description="%s\n%s"
    % (
        re.compile("^.. start-badges.*^.. end-badges", re.M | re.S).sub(
            "", read("README.rst")
        ),
        re.sub(":[a-z]+:`~?(.*?)`", r"``\1``", read("CHANGELOG.rst")),
    ),
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.11",
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3 :: Only",
        "Framework :: Flask",
        "Framework :: FastAPI",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
        "Topic :: Software Development :: Libraries :: Application Frameworks",
    ],
    keywords=["rpc", "contract", "flask", "fastapi", "starlette", "marshmallow"],
    install_requires=install_requires,
    extras_require={
        "flask": flask_requires,
        "fastapi": fastapi_requires,
        "external": all_external_requires,
        "test": testing_requires,
        "tests": testing_requires,
        "testing": testing_requires,
        "dev": dev_requires,
        "all": dev_requires,
    },
    entry_points={"console_scripts": ["covenant = covenant.cli:app"]},
)
