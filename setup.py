from setuptools import setup, find_packages
import re

# Read version from paylog/__init__.py
with open('paylog/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='paylog',
    version=version,
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'paylog': ['tax_rules/*.yaml'],
    },
    install_requires=[
        'PyPDF2>=3.0.0',
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.0.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'paylog=paylog.cli.__main__:main',
        ],
    },
    author='Personal',
    description='Personal payslip log with an approximate income tax estimate.',
    python_requires='>=3.10',
)
