from setuptools import setup, find_packages

setup(
    name="burnbox",
    version="1.0.0",
    description="Pin-protected secrets that burn after the first read. AES-256-GCM + Argon2id.",
    long_description=open("README.md").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests"]),
    py_modules=["cli"],
    python_requires=">=3.9",
    install_requires=[
        "cryptography>=41.0.0",
        "argon2-cffi>=21.3.0",
        "lmdb>=1.4.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "burnbox=cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Security :: Cryptography",
    ],
    license="MIT",
)
