"""
Setup script for the PG_Ops package.
"""

from setuptools import setup, find_packages

setup(
    name="pg_ops",
    version="0.1.0",
    description="Resilient PostgreSQL connection, query and error-classification layer",
    packages=find_packages(exclude=("tests", "tests.*")),
    py_modules=["pg_ops_exceptions"],
    install_requires=[
        "psycopg[binary]>=3.1.0",  # libpq transport (psycopg.pq)
        "pydantic>=2.0.0,<3.0.0",
        "pydantic-settings>=2.0.0",
        "pydantic-yaml>=1.1.0",
        "pyyaml>=6.0",
        "jinja2>=3.1.0",  # query templates
        "tenacity>=8.2.0",  # For retry logic
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
)
