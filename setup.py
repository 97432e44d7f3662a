import pathlib
from setuptools import setup, find_packages

VERSION = "0.0.1"

def load_requirements():
    requirements = []
    REQS_PATH = pathlib.Path(__file__).resolve().parent.joinpath('requirements.txt')
    if REQS_PATH.exists() and REQS_PATH.is_file():
        requirements = [x for x in REQS_PATH.read_text().splitlines() if (len(x) and not x.startswith("#"))]
    return requirements

setup(
    name="geoiplookup",
    packages=find_packages(exclude=['tests', 'tests.*']),
    version=VERSION,
    description="Country lookups from RIR delegation data",
    install_requires=load_requirements(),
    extras_require={
        'test': ['pytest']
    },
    include_package_data=True,
    python_requires='>=3.9',
    entry_points = {
        'console_scripts': [
            'geoiplookup = geoiplookup.cli:main'
        ]
    }
)
