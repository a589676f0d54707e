"""
TableGen - CRUD Scaffolding from Live Database Tables
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="tablegen",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="⚡ Generate backend handlers, frontend views and menus from a database table",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Diegoproggramer/tablegen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"tablegen": ["template_files/*/*.jinja"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "Topic :: Database",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.20.0",
        "sqlalchemy>=2.0.0",
        "pydantic>=2.0.0",
        "jinja2>=3.1.0",
        "PyYAML>=6.0",
        "filelock>=3.12.0",
    ],
    extras_require={
        "mysql": [
            "pymysql>=1.1.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
        "dev": [
            "pytest>=7.0",
            "httpx>=0.24.0",
            "black>=23.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tablegen=tablegen.cli:cli_main",
        ],
    },
    keywords="crud, generator, scaffolding, mysql, postgresql, sqlite, fastapi, vue",
    project_urls={
        "Bug Reports": "https://github.com/Diegoproggramer/tablegen/issues",
        "Source": "https://github.com/Diegoproggramer/tablegen",
    },
)
