"""
APIForge - Project graph to FastAPI service generator
Install: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="apiforge",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="⚡ Generate complete FastAPI services from an entity graph",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "networkx>=3.0",
    ],
    extras_require={
        "runtime": [
            "fastapi>=0.100.0",
            "uvicorn>=0.20.0",
            "sqlalchemy[asyncio]>=2.0.0",
            "asyncpg>=0.29.0",
            "aiomysql>=0.2.0",
            "aiosqlite>=0.20.0",
            "python-jose>=3.3.0",
            "passlib>=1.7.4",
            "python-multipart>=0.0.5",
            "bcrypt>=4.0.0",
            "email-validator>=2.0.0",
        ],
        "test": [
            "pytest>=7.0",
            "fastapi>=0.100.0",
            "sqlalchemy[asyncio]>=2.0.0",
            "aiosqlite>=0.20.0",
            "email-validator>=2.0.0",
        ],
        "dev": [
            "pytest>=7.0",
            "black>=23.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "apiforge=apiforge.cli:cli_main",
        ],
    },
    keywords="fastapi, generator, api, backend, code-generator, crud, python",
)
