import re

import setuptools

# Read the version without importing the package (dependencies may not be installed yet)
with open("pwmonitor/__init__.py", "r") as fh:
    __version__ = "%s.%s.%s" % re.search(r"version_tuple = \((\d+), (\d+), (\d+)\)", fh.read()).groups()

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="pwmonitor",
    version=__version__,
    author="Jason Cox",
    author_email="jason@jasonacox.com",
    description="Python module to poll and control a local Tesla Energy Gateway as a stream of telemetry events",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url='https://github.com/jasonacox/pypowerwall',
    packages=setuptools.find_packages(include=['pwmonitor', 'pwmonitor.*']),
    install_requires=[
        'requests',
        'urllib3',
        'python-dotenv',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['pwmonitor=pwmonitor.__main__:main'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
