"""Setup script for dsyrs package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
here = Path(__file__).parent.resolve()
long_description = (here / 'README.md').read_text(encoding='utf-8')

setup(
    name='dsyrs-servo-driver',
    version='1.0.0',
    description='Python driver for DSY-RS series AC servo drives over Modbus RTU',
    long_description=long_description,
    long_description_content_type='text/markdown',

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Intended Audience :: Manufacturing',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: System :: Hardware :: Hardware Drivers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
    ],

    keywords='servo, motor, modbus, rs485, automation, dsy-rs',

    packages=find_packages(exclude=['tests', 'tests.*', 'examples', 'examples.*', 'docs', 'docs.*']),

    python_requires='>=3.10',

    install_requires=[
        'pyserial>=3.5',
    ],

    extras_require={
        'dev': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'pytest-asyncio>=0.21',
            'black>=23.0',
            'flake8>=6.0',
            'mypy>=1.0',
        ],
        'test': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'pytest-asyncio>=0.21',
            'pytest-mock>=3.10',
        ],
    },

    package_data={
        'dsyrs': [
            'py.typed',  # PEP 561 type hints marker
        ],
    },

    zip_safe=False,
)
