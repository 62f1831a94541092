[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "e1line"
version = "0.1.0"
description = "E1 line handling: G.704 framing with CRC-4, HDLC, timeslot multiplexing and line control"
requires-python = ">=3.10"
dependencies = []
keywords = ["e1", "g704", "g706", "crc4", "hdlc", "telephony", "tdm", "multiplex", "icE1usb"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["e1line"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
