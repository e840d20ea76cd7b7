# Copyright 2019 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Configuration for the varinspector package."""

from setuptools import find_packages
from setuptools import setup

DEPENDENCIES = (
    'jupyter_client>=8.0',
    'jupyter_server>=2.0',
    'pandas>=2.0',
    'tornado>=6.2',
)

TEST_DEPENDENCIES = (
    # The Python language bundle is exercised in a real IPython shell.
    'ipython>=8.0',
    'numpy>=1.23',
    'pytest>=7.0',
)

setup(
    name='varinspector',
    version='0.1.0',
    description='Variable inspector for running Jupyter kernels',
    long_description=(
        'Inspects variables of running notebook and console kernels and '
        'streams their state to a display panel.'
    ),
    packages=find_packages(exclude=('tests*',)),
    install_requires=DEPENDENCIES,
    extras_require={'test': TEST_DEPENDENCIES},
    python_requires='>=3.9',
    license='Apache 2.0',
    keywords='ipython jupyter kernel variable inspector',
    classifiers=(
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Framework :: Jupyter',
    ),
    include_package_data=True,
)
