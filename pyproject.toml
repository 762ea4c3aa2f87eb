[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eoipkit"
version = "0.1.0"
description = "Tools for Ethernet-over-IP tunnels: capture analyzer, command parser and privileged helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["eoip", "etherip", "gre", "pcap", "pcapng", "tunnel", "tap", "networking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
eoip-analyzer = "eoipkit.analyzer.main:main"

[tool.hatch.build.targets.wheel]
packages = ["eoipkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
