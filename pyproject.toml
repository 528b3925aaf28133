[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "snocat"
version = "0.8.0a5"
description = "Asyncio building blocks for streaming network tunnels: framing, proxying, port allocation and stream combinators"
requires-python = ">=3.10"
dependencies = []
keywords = ["asyncio", "tunnel", "proxy", "streams", "networking", "framing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["snocat"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
