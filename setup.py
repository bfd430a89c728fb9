"""Setup configuration for pgsql_to_mariadb package."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="pgsql_to_mariadb",
    version="0.1.0",
    description="A package for migrating schema and data from PostgreSQL to MariaDB",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pymysql>=1.0.0",
        "psycopg2-binary>=2.9.0",
        "pandas>=1.3.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-mock>=3.10",
        ],
    },
    entry_points={
        "console_scripts": [
            "pgsql-to-mariadb=pgsql_to_mariadb.runner:main",
        ],
    },
)
