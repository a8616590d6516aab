[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "semlakit"
version = "0.1.0"
description = "Building blocks for a line-oriented licensing protocol: command grammar, message framing, TLS channels and structured errors."
requires-python = ">=3.10"
keywords = ["licensing", "protocol", "tls", "rsa", "x509"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["semlakit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
