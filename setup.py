#!/usr/bin/env python

import os

from setuptools import find_packages, setup

from dmsdav._version import __version__

version = __version__


try:
    readme = open("README.md", "rt").read()
except OSError:
    readme = "(Readme file not found.)"

# 'setup.py upload' fails on Vista, because .pypirc is searched on 'HOME' path
if "HOME" not in os.environ and "HOMEPATH" in os.environ:
    os.environ.setdefault("HOME", os.environ.get("HOMEPATH", ""))
    print("Initializing HOME environment variable to '{}'".format(os.environ["HOME"]))

# cheroot is the preferred server for the stand-alone mode
# (`dmsdav.server.server_cli.py`).
install_requires = [
    "cheroot",
    "defusedxml",
    "filetype",
    "Jinja2",
    "jsmin",
    "PyYAML",
]
tests_require = ["pytest", "WebTest"]

setup(
    name="dmsdav",
    version=version,
    author="Martin Wendt and contributors",
    url="https://github.com/mar10/wsgidav/",
    description="WebDAV server that publishes a document management repository",
    long_description=readme,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Information Technology",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Internet :: WWW/HTTP :: WSGI",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
        "Topic :: Office/Business",
    ],
    keywords="web wsgi webdav dms document management server",
    license="MIT",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests"]),
    package_data={
        "dmsdav.dir_browser": ["htdocs/*.*"],
    },
    install_requires=install_requires,
    tests_require=tests_require,
    py_modules=[],
    zip_safe=False,
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["dmsdav = dmsdav.server.server_cli:run"]},
)
