[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cbeverify"
version = "0.1.0"
description = "Verify Commercial Bank of Ethiopia transfer receipts against the bank's official PDF records"
requires-python = ">=3.10"
dependencies = []
keywords = ["cbe", "ethiopia", "bank", "receipt", "payment", "verification", "pdf"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Environment :: Console",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cbe-verify = "cbeverify.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cbeverify"]

[tool.hatch.build.targets.sdist]
include = ["cbeverify", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
