"""Setup for the Civic application workflow and audit API."""

from setuptools import find_namespace_packages, setup

setup(
    name="civic-api",
    version="0.1.0",
    description="Civic application workflow, identifier allocation and audit API",
    packages=find_namespace_packages(include=["civic_api", "civic_api.*"]),
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn[standard]>=0.27.0",
        "sqlalchemy>=2.0.25,<2.1",
        "alembic>=1.13.0",
        "psycopg2-binary>=2.9.9",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "passlib>=1.7.4",
        "prometheus-client>=0.19.0",
        "click>=8.1.7",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "civic-api=civic_api.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
