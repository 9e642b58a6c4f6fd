"""Setup configuration for oracle_to_postgresql package."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="oracle_to_postgresql",
    version="0.1.0",
    description="A package for transferring Oracle schemas and data to PostgreSQL",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["oracle_to_postgresql_pkg", "oracle_to_postgresql_pkg.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "oracledb>=2.0.0",
        "psycopg2-binary>=2.9.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "oracle-to-postgresql=oracle_to_postgresql_pkg.runner:main",
        ],
    },
)
