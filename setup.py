from setuptools import setup, find_packages

setup(
    name="MCReplicability",
    version="0.1.0",
    packages=find_packages(include=["mcreplicability", "mcreplicability.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "joblib",
    ],
    extras_require={
        "progress": ["tqdm"],
        "test": ["pytest"],
    },
    description="Monte Carlo replicability estimation (ERR, EDR, ARP) for p-value corpora",
)
