# setup.py
from setuptools import setup, find_packages

setup(
    name="nft_vault",
    version="0.1.0",
    packages=find_packages(),
    python_requires=">=3.9",
    install_requires=[
        "msgpack",             # state record encoding
        "plyvel",              # LevelDB state store
        "pycryptodome",        # keccak-256
        "cryptography",        # ECDSA signed calls
        "prometheus-client",   # operation metrics
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "nft-vault=nft_vault.cli:main",
        ],
    },
)
