from setuptools import find_packages, setup

import os
import re


# Recommendations from https://packaging.python.org/
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()


def read(*parts):
    with open(os.path.join(here, *parts), 'r') as fp:
        return fp.read()


def find_version(*file_paths):
    version_file = read(*file_paths)
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]",
                              version_file, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")


setup(
    name='polynomials4ml',
    version=find_version("polynomials4ml", "__init__.py"),
    description='Associated Legendre polynomials, complex spherical harmonics '
                'and three term recurrence orthogonal polynomials with analytic derivatives.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=["tests.*", "tests"]),
    install_requires=[
        'numpy',
        'scipy',  # log-gamma for the Jacobi norms
        'torch>=2.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'sympy',  # reference spherical harmonics
        ],
    },
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Operating System :: MacOS",
    ],
    python_requires='>=3.8',
    license="MIT",
)
