"""
ucpauth: Usage-control policy decisions and UMA grant negotiation - Python Implementation

ucpauth evaluates ODRL usage-control policies stored as RDF rules and negotiates
UMA access tokens on top of the resulting decisions, with explainable decisions,
pluggable rule storage and a verifiable token format.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="ucpauth-py",
    version="0.1.0",
    author="Mauricio Fernandez",
    author_email="mauricio.fernandez@siemens.com",
    description="Usage-control policy decisions and UMA grant negotiation - Python Implementation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/mauriciomferz/Gauth_py",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"ucpauth": ["rules/*.rq"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ucpauth-server=ucpauth.server.main:main",
        ],
    },
)
