from setuptools import setup, find_packages

with open("README.rst", "r") as f:
    readme = f.read()

setup(
    name="navpreint",
    version="0.0.1",
    description="On-manifold IMU preintegration for batch state estimation.",
    long_description=readme,
    packages=find_packages(include=["navpreint", "navpreint.*"]),
    extras_require={"test": ["pytest"]},
    install_requires=[
        "numpy>=1.21.2",
        "scipy>=1.7.1",
        "pymlg @ git+https://github.com/decargroup/pymlg@main",
    ],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
