[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "almeta"
version = "0.1.0"
description = "Peer-to-peer mesh node logic: signalling, checksummed packets, distance-vector routing and neighbour scoring"
requires-python = ">=3.10"
dependencies = []
keywords = ["p2p", "mesh", "routing", "webrtc", "signalling", "overlay"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
almeta-sim = "almeta.simulation:main"

[tool.hatch.build.targets.wheel]
packages = ["almeta"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
