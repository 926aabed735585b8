from setuptools import setup, find_packages

setup(
    name="intrig-discovery",
    version="0.3.0",
    description="Discovery, auto-start and regeneration checks for per-project Intrig daemons",
    author="phisanti",
    author_email="tisalon@outlook.com",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "httpx>=0.27.0",
        "python-dotenv>=1.0.0",
        "rich>=13.0.0",
        "typer>=0.12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "intrig-discovery=intrig.main:intrig_discovery",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
