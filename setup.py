"""Setup file for development installation."""

from setuptools import setup, find_namespace_packages

setup(
    name="neurosci-ai",
    version="0.1.0",
    packages=find_namespace_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "httpx",
        "opentelemetry-instrumentation-fastapi",
        "prometheus-client",
        "pydantic>=2",
        "python-dotenv",
        "python-multipart",
        "structlog",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
