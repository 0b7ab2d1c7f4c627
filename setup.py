#!/usr/bin/env python

import os
import pathlib

import yaml
from jinja2 import Environment, FileSystemLoader, select_autoescape
from packaging.requirements import Requirement
from setuptools import setup


def get_requirements():
    """Get package requirements from conda recipe meta.yaml file"""
    env = Environment(
        loader=FileSystemLoader(pathlib.Path(__file__).parent / "recipe"),
        autoescape=select_autoescape(),
    )
    template = env.get_template("meta.yaml")
    meta = yaml.safe_load(template.render(environ=os.environ))

    requirements = {}
    for req in meta["requirements"]["run"]:
        requirement = Requirement(req)
        requirements[requirement.name] = str(requirement.specifier)

    # Handle packages that have different names on conda-forge and PyPI
    requirements["msgpack"] = requirements.pop("msgpack-python")

    # Get Python version requirements (also not included on PyPI)
    python_requires = requirements.pop("python")

    install_requires = [
        f"{name}{specifier}" for name, specifier in requirements.items()
    ]
    tests_require = meta["test"]["requires"]

    return python_requires, install_requires, tests_require


python_requires, install_requires, tests_require = get_requirements()

setup(
    name="runstore",
    version="0.1.0",
    description="Storage and comparative statistics for profiler runs",
    license="Apache-2.0",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    packages=["runstore"],
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=python_requires,
    install_requires=install_requires,
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["runstore = runstore.cli:main"]},
)
