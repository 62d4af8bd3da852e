from setuptools import find_packages, setup

setup(
    name="fem-fsi",
    version="0.1.0",
    description="Partitioned immersed-boundary fluid-structure interaction",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["fem_fsi", "fem_fsi.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "scipy",
        "meshio",
        "h5py",
        "pyyaml",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "fem-fsi=fem_fsi.cli.run_fsi:main",
        ],
    },
)
