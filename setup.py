import sys
import os
import re

from setuptools import setup
import setuptools
print("Using setuptools version", setuptools.__version__)

print('Python version = ',sys.version)
py_version = "%d.%d"%sys.version_info[0:2]  # we check things based on the major.minor version.

scripts = ['npt']
scripts = [ os.path.join('scripts',f) for f in scripts ]

build_dep = ['setuptools>=38', 'numpy>=1.17']
run_dep = ['numpy>=1.17', 'pyyaml', 'LSSTDESC.Coord>=1.1']
test_dep = ['pytest']

with open('README.rst') as file:
    long_description = file.read()

# Read in the nptcorr version from nptcorr/_version.py
# cf. http://stackoverflow.com/questions/458550/standard-way-to-embed-version-into-python-package
version_file=os.path.join('nptcorr','_version.py')
verstrline = open(version_file, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    nptcorr_version = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (version_file,))
print('NptCorr version is %s'%(nptcorr_version))

dist = setup(
    name="NptCorr",
    version=nptcorr_version,
    author="Mike Jarvis",
    author_email="michael@jarvis.net",
    description="Python module for computing N-point correlation functions",
    long_description=long_description,
    license="BSD License",
    packages=['nptcorr'],
    setup_requires=build_dep,
    install_requires=run_dep,
    extras_require={'test': test_dep},
    scripts=scripts
)
