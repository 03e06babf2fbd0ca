[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinymqtt"
version = "0.1.0"
description = "Building blocks of a small MQTT broker: byte buffers, socket helpers, a thread pool, a console command tree, a rule engine and an in-flight message store"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "broker", "rule-engine", "thread-pool", "buffer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tinymqtt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
