"""Setup configuration for AWS Infrastructure Catalog package."""

from setuptools import setup, find_packages

# Read the README file for the long description
try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = (
        "AWS Infrastructure Catalog - regions, services and per-region service "
        "availability from SSM Parameter Store"
    )

setup(
    name="aws-infra-catalog",
    version="1.0.0",
    author="AWS Infrastructure Catalog",
    description="AWS region and service catalog built from SSM Parameter Store",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "boto3>=1.26.0",
        "botocore>=1.29.0",
        "requests>=2.28.0",
        "urllib3>=1.26.0",
        "feedparser>=6.0.0",
        "pytz>=2022.1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "aws-infra-catalog=aws_infra_catalog.cli.main:main",
        ],
    },
)
