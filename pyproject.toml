[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "alarmpoint"
version = "0.1.0"
description = "A small home alarm with a web control page, captive DHCP and DNS servers, and an SSD1306 frame-buffer renderer"
requires-python = ">=3.10"
dependencies = []
keywords = ["alarm", "dhcp", "dns", "captive-portal", "ssd1306", "oled", "http"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
alarmpoint = "alarmpoint.app:main"

[tool.hatch.build.targets.wheel]
packages = ["alarmpoint"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
