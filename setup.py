from setuptools import setup, find_packages

setup(
    name="sedload",
    version="0.1.0",
    author="sedload contributors",
    description="Suspended sediment load estimation from continuous flow records and rating curves",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"sedload": ["data/*.csv"]},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Hydrology",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "matplotlib>=3.4.0",
        "scipy>=1.7.0",
        "requests>=2.25.0",
        "click>=8.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "pytest-cov", "black", "flake8"],
    },
    entry_points={
        "console_scripts": [
            "sedload=sedload.cli:cli",
        ],
    },
)
