# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
A setuptools based setup module.
See:
https://packaging.python.org/guides/distributing-packages-using-setuptools/
https://github.com/pypa/sampleproject
"""

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
import os

here = os.path.abspath(os.path.dirname(__file__))

# read the version without importing the package (its dependencies may not be installed yet)
version_vars = dict()
with open(os.path.join(here, 'src', 'FlowCalEngine', '__version__.py'), encoding='utf-8') as f:
    exec(f.read(), version_vars)

long_description = """# FlowCalEngine

AC Newton-Raphson power flow engine with an outer-loop control framework:
generator reactive limits, transformer and shunt voltage control, phase shifters,
distributed slack and area interchange control.

## Installation

pip install -e .

"""

description = 'FlowCalEngine is an AC power flow engine with discrete and continuous grid controls'

pkgs_to_exclude = ['docs', 'research', 'tests', 'tests.*']

packages = find_packages(where='src', exclude=pkgs_to_exclude)

dependencies = ['setuptools>=41.0.1',
                "numpy>=1.24",
                "scipy>=1.0.0",
                "networkx>=2.1",
                "pandas>=2.0",
                "numba>=0.60",  # to compile routines natively
                "nptyping>=2.5",
                ]

extras_require = {
    'test': ["pytest>=7.2"]
}

setup(
    name='FlowCalEngine',  # Required
    version=version_vars['__FlowCalEngine_VERSION__'],  # Required
    license='MPL2',
    description=description,  # Optional
    long_description=long_description,  # Optional
    long_description_content_type='text/markdown',  # Optional (see note above)
    classifiers=[
        'License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)',
        'Programming Language :: Python :: 3.9',
    ],
    keywords='power systems power flow',  # Optional
    packages=packages,  # Required
    package_dir={'': 'src'},
    include_package_data=True,
    python_requires='>=3.9',
    install_requires=dependencies,
    extras_require=extras_require,
)
