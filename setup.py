"""
Agent Knowledge Core Setup Configuration
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README file
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Read requirements
requirements = [
    "fastapi>=0.100.0",
    "uvicorn[standard]>=0.23.0",
    "httpx>=0.24.0",
    "pydantic>=2.0.0",
    "loguru>=0.7.0",
    "aiofiles>=23.0.0",
    "tenacity>=8.2.0",
    "PyYAML>=6.0",
    "python-multipart>=0.0.6",  # For file upload endpoints
    "python-dotenv>=1.0.0",  # For environment configuration
]

dev_requirements = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
    "black>=23.7.0",
    "isort>=5.12.0",
    "flake8>=6.0.0",
    "mypy>=1.5.0",
]

setup(
    name="agent-knowledge-core",
    version="0.1.0",
    author="Agent Knowledge Team",
    author_email="team@example.com",
    description="智能体知识库摄取跟踪核心库",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["agent_knowledge_core", "agent_knowledge_core.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
        "test": ["pytest>=7.4.0", "pytest-asyncio>=0.21.0"],
        "all": requirements + dev_requirements,
    },
    include_package_data=True,
    package_data={
        "agent_knowledge_core": ["py.typed"],
    },
    keywords="knowledge base, ingestion, progress tracking, agents",
)
