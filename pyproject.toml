[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "asocks5"
version = "1.0.0rc0"
description = "Asynchronous SOCKS5 and SOCKS4/4a client built on asyncio, with UDP associate support"
requires-python = ">=3.10"
dependencies = []
keywords = ["socks", "socks5", "socks4", "socks4a", "proxy", "asyncio", "udp", "client"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
asocks5-client = "asocks5.cli_client:main"
asocks5-udp-client = "asocks5.cli_udp_client:main"

[tool.hatch.build.targets.wheel]
packages = ["asocks5"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
