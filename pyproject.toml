[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sdtn"
version = "0.1.3"
description = "Delay Tolerant Networking node: BPv7-style bundles, a file-backed bundle store, epidemic routing and a TCP convergence layer"
requires-python = ">=3.11"
keywords = ["dtn", "delay-tolerant-networking", "bundle-protocol", "bpv7", "routing", "cbor"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
]
dependencies = [
    "cbor2",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
sdtn = "sdtn.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sdtn"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
