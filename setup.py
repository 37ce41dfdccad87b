"""Setup configuration for CrowdTrack."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="crowdtrack",
    version="0.1.0",
    author="Charles Jaffe",
    description="MTA realtime feed ingestion and subway crowding estimates",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/crowdtrack",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"crowdtrack": ["data/*.json"]},
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Monitoring",
    ],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.25.0",
        "pandas>=1.3.0",
        "gtfs-realtime-bindings>=0.0.7",
        "protobuf>=3.20.0",
        "pydantic>=2.0",
        "python-dotenv>=0.19.0",
        "tzdata; platform_system == 'Windows'",
    ],
    extras_require={
        "dev": ["pytest>=6.0", "black", "flake8"],
    },
)
