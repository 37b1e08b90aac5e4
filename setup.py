"""Setup script for pypoly1305 - pure Python, libc reached through CFFI ABI mode"""

from pathlib import Path

from setuptools import find_packages, setup

readme = Path(__file__).parent / "README.md"

setup(
    name="pypoly1305",
    version="0.1.0",
    description="Poly1305 one-time authenticator (RFC 8439) with wipeable state",
    long_description=readme.read_text(encoding="utf-8") if readme.exists() else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["pypoly1305", "pypoly1305.*"]),
    python_requires=">=3.10",
    install_requires=["cffi>=1.15"],
    extras_require={"test": ["pytest"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Topic :: Security :: Cryptography",
    ],
)
