#!/usr/bin/env python
import os
import subprocess
import re

from setuptools import setup
from setuptools import find_packages

kwargs = {
    'name' : 'oxasl_mfree',
    'description' : 'Model-free (deconvolution) analysis of ASL data',
    'url' : 'oxasl.readthedocs.io',
    'author' : 'Martin Craig',
    'author_email' : 'martin.craig@eng.ox.ac.uk',
    'license' : '',
}

def git_version():
    # Full version includes the Git commit hash
    full_version = subprocess.check_output('git describe --dirty', shell=True, stderr=subprocess.DEVNULL).decode("utf-8").strip(" \n")

    # Python standardized version in form major.minor.patch.dev<build>
    version_regex = re.compile(r"v?(\d+\.\d+\.\d+(-\d+)?).*")
    match = version_regex.match(full_version)
    if match:
        std_version = match.group(1).replace("-", ".dev")
    else:
        raise RuntimeError("Failed to parse version string %s" % full_version)

    return full_version, std_version

def git_timestamp():
    return subprocess.check_output('git log -1 --format=%cd', shell=True, stderr=subprocess.DEVNULL).decode("utf-8").strip(" \n")

def set_metadata(module_dir, version_str, timestamp_str):
    with open(os.path.join(module_dir, "oxasl_mfree", "_version.py"), "w") as vfile:
        vfile.write("__version__ = '%s'\n" % version_str)
        vfile.write("__timestamp__ = '%s'\n" % timestamp_str)

def get_metadata(module_dir):
    # Outside a git checkout use the version already recorded in the package
    version_str, timestamp_str = "0.0.0", "unknown"
    with open(os.path.join(module_dir, "oxasl_mfree", "_version.py"), "r") as vfile:
        for line in vfile.readlines():
            key, _, value = line.partition("=")
            if key.strip() == "__version__":
                version_str = value.strip().strip("'\"")
            elif key.strip() == "__timestamp__":
                timestamp_str = value.strip().strip("'\"")
    return version_str, timestamp_str

# Read in requirements from the requirements.txt file.
with open('requirements.txt', 'rt') as f:
    requirements = [l.strip() for l in f.readlines() if l.strip()]

rootdir = os.path.abspath(os.path.dirname(__file__))
try:
    _, stdv = git_version()
    timestamp = git_timestamp()
    set_metadata(rootdir, stdv, timestamp)
except (subprocess.CalledProcessError, RuntimeError):
    stdv, timestamp = get_metadata(rootdir)

setup(
    packages=find_packages(),
    version=stdv,
    install_requires=requirements,
    extras_require={
        'test' : ['pytest'],
    },
    entry_points={
        'console_scripts' : [
            "oxasl_mfree=oxasl_mfree.mfree:main",
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering :: Medical Science Apps.',
    ],
    **kwargs
)
