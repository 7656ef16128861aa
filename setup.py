from setuptools import find_packages
from setuptools import setup

from kubescale import __version__

setup(
    name='kubescale',
    version=__version__,
    provides=['kubescale'],
    description='Kubernetes cluster metrics collection and scale-out tools for DigitalOcean',
    packages=find_packages(exclude=['tests', 'tests.*']),
    setup_requires=['setuptools'],
    include_package_data=True,
    python_requires='>=3.7',
    install_requires=[
        'arrow',
        'boto3',
        'botocore',
        'colorama',
        'colorlog',
        'mypy-extensions',
        'PyStaticConfiguration',
        'pyramid',
        'PyYAML',
        'requests',
        'waitress',
    ],
    extras_require={
        'test': [
            'pytest',
            'webtest',
        ],
    },
    entry_points={
        'console_scripts': [
            'kubescale=kubescale.run:main',
        ],
    },
)
