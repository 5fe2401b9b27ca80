"""Setup script for ytpubsub."""

from pathlib import Path

from setuptools import find_packages, setup

with Path("README.md").open() as file:
    long_description = file.read()

setup(
    name="ytpubsub",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    description="PubSubHubbub (WebSub) subscriber that keeps YouTube channels "
    "subscribed and receives their feed updates in real-time",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=[
        "fastapi~=0.115.0",
        "httpx~=0.28.1",
        "uvicorn~=0.34.0",
        "xmltodict~=0.14.2",
        "pyngrok~=7.2.3",
        "aiofiles~=24.1.0",
        "python-dotenv~=1.0.1",
        "typing_extensions>=4.12.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.0",
            "pytest-asyncio>=0.24.0",
            "respx~=0.22.0",
        ],
    },
    entry_points={
        "console_scripts": ["ytpubsub=ytpubsub.__main__:main"],
    },
    license="MIT",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
)
