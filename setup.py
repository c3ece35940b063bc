#!/usr/bin/env python3

# Qualflow - information-flow qualifier inference
# Copyright (C) 2021 GrammaTech, Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# This project is sponsored by the Office of Naval Research, One Liberty
# Center, 875 N. Randolph Street, Arlington, VA 22203 under contract #
# N68335-17-C-0700.  The content of the information does not necessarily
# reflect the position or policy of the Government and no official
# endorsement should be inferred.


from os import path
from runpy import run_path
from setuptools import setup

here = path.abspath(path.dirname(__file__))

PKGINFO = run_path(path.join(here, "src", "version.py"))
__version__ = PKGINFO["__version__"]
__packagename__ = PKGINFO["__packagename__"]

# get the dependencies and installs
with open(path.join(here, "requirements.txt"), encoding="utf-8") as f:
    all_reqs = f.read().split("\n")

install_requires = [x.strip() for x in all_reqs if x.strip() and "git+" not in x]

setup(
    name=__packagename__,
    version=__version__,
    description="Constraint-based inference of information-flow qualifiers",
    author="GrammaTech, Inc.",
    python_requires=">=3.8.0",
    package_dir={__packagename__: "src"},
    packages=[__packagename__],
    install_requires=install_requires,
    extras_require={"test": ["pytest"]},
)
