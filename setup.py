from setuptools import setup, find_packages

setup(
    name="blockmh",
    version="0.1.0",
    author="The blockmh developers",
    description="Blocked Metropolis-Hastings sampler with resumable chains",
    packages=find_packages(include=["blockmh", "blockmh.*"]),
    python_requires=">=3.8",
    install_requires=["numpy"],
    extras_require={
        "mpi": ["mpi4py"],
        "examples": ["matplotlib"],
        "test": ["pytest", "scipy"],
    },
)
