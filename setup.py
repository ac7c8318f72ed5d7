"""
Setup configuration for PySequenceReverse
"""
from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="pysequence-reverse",
    version="1.0.0",
    description="Reverse engineer UML sequence diagrams from the call hierarchy of Python functions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="PySequenceReverse Team",
    license="MIT",
    # core/ and services/ are namespace packages (no __init__.py)
    packages=find_namespace_packages(include=["core", "core.*", "services", "services.*"]),
    py_modules=["cli", "server"],
    python_requires=">=3.10",
    install_requires=[
        "mcp>=1.2.0,<2",
        "plantuml>=0.3.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "pillow>=10.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pysequence-reverse=cli:main",
            "pysequence-reverse-mcp=server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development",
        "Topic :: Software Development :: Documentation",
    ],
    keywords=[
        "sequence-diagram",
        "call-hierarchy",
        "reverse-engineering",
        "uml",
        "mermaid",
        "plantuml",
        "python",
        "mcp",
    ],
)
