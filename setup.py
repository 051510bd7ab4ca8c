from setuptools import setup, find_packages

setup(
    name="feedlink",
    version="0.1.0",
    packages=find_packages(include=["feedlink", "feedlink.*"]),
    install_requires=[
        "websockets",
        "asyncio-throttle>=1.0.2,<2",
        "pydantic>=2",
        "pyyaml",
        "structlog",
        "prometheus-client",
        "fastapi",
        "typer",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    entry_points={"console_scripts": ["feedlink=feedlink.cli:main"]},
    author="Akshat Joshi",
    author_email="joshiakshat0511@gmail.com",
    description="Managed pool of persistent, rate-limited WebSocket feed connections",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
)
