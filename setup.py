"""
Setup script for recruit-sync project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="recruit-sync",
    version="0.1.0",
    packages=find_packages(include=["recruit_sync", "recruit_sync.*", "sync_runner", "sync_runner.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "httpx>=0.27",
        "tenacity>=8.2",
        "redis>=5.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
