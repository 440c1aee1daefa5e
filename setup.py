from setuptools import setup, find_packages

from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(
    name='mcdecrypter',
    version='0.1.0',
    description='Library to recover the method bodies of MaxtoCode protected .NET assemblies',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_dir={'mcdecrypter': 'mcdecrypter'},
    install_requires=[
        'pefile'
    ],
    extras_require={
        'disasm': ['dncil'],
        'test': ['pytest']
    },
    python_requires='>=3.8'
)
