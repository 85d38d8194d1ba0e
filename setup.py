"""
MPBusinessHub API

Business directory backend with tiered packages, adverts, reviews and
PayFast payments.
"""

from setuptools import setup, find_packages

setup(
    name="mpbusinesshub",
    version="1.0.0",
    description="MPBusinessHub - business directory API",
    author="MPBusinessHub",
    packages=find_packages(include=["mpbusinesshub", "mpbusinesshub.*"]),
    python_requires=">=3.11",
    install_requires=[
        # Web framework
        "fastapi>=0.110.0",
        "uvicorn[standard]>=0.27.0",

        # Database
        "sqlalchemy[asyncio]>=2.0.25",
        "asyncpg>=0.29.0",
        "aiosqlite>=0.19.0",

        # Configuration and validation
        "pydantic[email]>=2.5.0",
        "pydantic-settings>=2.1.0",

        # Security
        "python-jose[cryptography]>=3.3.0",
        "bcrypt>=4.1.0",

        # PayFast server-side validation
        "httpx>=0.26.0",

        # Monitoring and observability
        "sentry-sdk[fastapi]>=1.39.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "black>=23.10.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mpbh-seed=mpbusinesshub.scripts.seed_data:main",
            "mpbh-maintenance=mpbusinesshub.scripts.maintenance:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "License :: Other/Proprietary License",
    ],
)
