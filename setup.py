from setuptools import setup, find_packages

setup(
    name="crptapi",
    version="0.1.0",
    description="Rate-limited client for the CRPT document creation API",
    packages=find_packages(include=["crptapi", "crptapi.*"]),
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
    entry_points={
        "console_scripts": ["crptapi=crptapi.cli:main"],
    },
)
