from pathlib import Path

from setuptools import find_packages, setup

version = (Path(__file__).parent / "tinyhttp/VERSION").read_text("ascii").strip()


install_requires = [
    "certifi",
    "cryptography>=37.0.0",
    "pyOpenSSL>=22.0.0",
    "service_identity>=18.1.0",
    "w3lib>=1.17.0",
]
extras_require = {
    "test": ["pytest>=7.0", "testfixtures<12"],
}


setup(
    name="tinyhttp",
    version=version,
    description="A small, synchronous HTTP/1.1 client",
    long_description=open("README.rst", encoding="utf-8").read(),
    author="tinyhttp developers",
    license="BSD",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"tinyhttp": ["VERSION"]},
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
)
