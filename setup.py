from setuptools import setup, find_packages

setup(
    name="zk-privacy-pool",
    version="0.1.0",
    description="Privacy pool engine: Poseidon commitments, Merkle accumulator and Groth16 withdrawals",
    author="ZK Privacy Pool Team",
    author_email="team@zk-privacy-pool.dev",
    url="https://github.com/zk-project/zk-privacy-pool",
    license="MIT",
    python_requires=">=3.9",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "py_ecc>=6.0.0",
        "pycryptodome>=3.18.0",
        "cryptography>=40.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "hypothesis>=6.0.0",
        ],
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
