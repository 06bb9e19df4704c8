"""
Setup script for uiforge-learning.

The uiforge learning loop is the self-improving half of the uiforge UI
generator. It serves three roles:

1. Feedback capture - explicit ratings plus implicit signals inferred from
   consecutive generations in a session
2. Pattern promotion - recurring, well-scoring markup skeletons become
   first-class catalog snippets
3. Training export - accumulated feedback becomes JSONL datasets for small
   adapter models

The 'uiforge-learn' command is the operational entry point.
"""

from setuptools import find_packages, setup

setup(
    name="uiforge-learning",
    version="1.0.0",
    description="Self-improving feedback, pattern promotion and embedding search for UI generation",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="uiforge",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP (local model server)
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
        # Vectors
        "numpy>=1.24.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "local-ai": [
            "sentence-transformers>=2.2.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "uiforge-learn=uiforge.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Code Generators",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    keywords="ui generation feedback embeddings pattern-mining cli",
)
