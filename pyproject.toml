[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "roundsim"
version = "0.1.0"
description = "Round-based simulator for distributed algorithms: Kademlia, Chord, PBFT, Paxos, Raft and a stable data link"
requires-python = ">=3.10"
dependencies = []
keywords = ["simulation", "distributed systems", "consensus", "pbft", "paxos", "raft", "dht"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["roundsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
