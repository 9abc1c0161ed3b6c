# setup.py
from setuptools import setup, find_packages

setup(
    name="garderie_watch",
    version="0.1.0",
    description="Crawler that reports new and updated garderie listings from magarderie.com",
    packages=find_packages(include=["garderie_watch", "garderie_watch.*"]),
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "lxml>=5.0",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
        "SQLAlchemy[asyncio]>=2.0",
        "aiosqlite>=0.19",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "garderie-watch=garderie_watch.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
