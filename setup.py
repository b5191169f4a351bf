"""
Setup script for notification-streams
"""

from setuptools import setup, find_packages

setup(
    name="notification-streams",
    version="0.1.0",
    description="Registry of persistent controller notification streams (SSE) with automatic reconnection",
    packages=find_packages(include=["notification_streams", "notification_streams.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.25.0",
        "httpx-sse>=0.4.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "click>=8.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "notification-streams=notification_streams.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
