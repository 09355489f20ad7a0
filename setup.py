"""
Pneumo Detect - Chest X-ray pneumonia screening
Interchangeable scoring backends behind one inference pipeline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="pneumo-detect",
    version="2.0.0",
    author="Medical AI Team",
    author_email="contact@medical-ai.example.com",
    description="Pneumo Detect: pneumonia screening from chest X-rays with pluggable backends",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/medical-ai/pneumonia-detector",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.9",
    install_requires=[
        "torch>=2.1.0",
        "torchvision>=0.16.0",
        "timm>=0.9.12",
        "opencv-python>=4.8.1.78",
        "Pillow>=10.1.0",
        "albumentations>=1.3.1",
        "numpy>=1.24.3",
        "fastapi>=0.108.0",
        "uvicorn[standard]>=0.25.0",
        "python-multipart>=0.0.6",
        "httpx>=0.25.0",
        "PyYAML>=6.0.1",
        "python-dotenv>=1.0.0",
        "loguru>=0.7.2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "black>=23.12.1",
            "flake8>=7.0.0",
            "mypy>=1.7.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "pneumo-predict=pneumo_detect.cli:main",
            "pneumo-api=pneumo_detect.api.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "pneumo_detect": ["configs/*.yaml"],
    },
    zip_safe=False,
)
