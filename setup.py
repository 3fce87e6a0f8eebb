from setuptools import setup, find_packages

setup(
    name='sparql-ingest',
    version='0.4.5',
    description='SPARQL Ingest: RDF change records to SPARQL Update',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=["test_sparql", "test_sparql.*"]),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'sparqlingest=sparqlingest.cmd.sparqlingest_cmd:main',
        ],
    },

    license='MIT',
    install_requires=[
        "python-dotenv",
        "rdflib>=7.0.0",
        "PyYAML",
        'aiohttp',
        'aiofiles',
        'tabulate'
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },

    classifiers=[
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.11',
)
