from setuptools import setup, find_namespace_packages

setup(
    name="simpidemic",
    version="0.1.0",
    description="Interactive deterministic epidemic compartment simulator",
    packages=find_namespace_packages(include=["simpidemic*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "numpy>=1.26.0",
        "streamlit>=1.35.0",
        "plotly>=5.20.0",
    ],
    extras_require={
        "dev": ["pytest>=8.0.0"],
    },
)
