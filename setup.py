"""
Setup configuration for HW2SW Architect
"""
from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="hw2sw-architect",
    version="1.0.0",
    description="Hardware block diagram to layered software architecture, with requirement diffs and LLM-generated module APIs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_namespace_packages(include=["core", "core.*", "services", "services.*"]),
    py_modules=["app", "server"],
    python_requires=">=3.10",
    install_requires=[
        "mcp>=1.0.0,<2",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "langchain-core>=0.2.0",
        "langchain-openai>=0.1.0",
        "gradio>=4.0.0",
        "pillow>=10.0.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "hw2sw-architect=app:main",
            "hw2sw-mcp=server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
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
        "Topic :: System :: Hardware",
    ],
    keywords=[
        "architecture",
        "embedded",
        "hardware",
        "requirements",
        "mermaid",
        "llm",
        "mcp",
    ],
)
