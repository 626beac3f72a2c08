[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sdmetrics-adapter"
version = "0.15.2"
description = "Option handling, status errors and kubelet stats types for a Kubernetes metrics adapter backed by Cloud Monitoring, with two small metric exporters for testing autoscaling."
requires-python = ">=3.10"
keywords = ["kubernetes", "metrics", "monitoring", "autoscaling", "prometheus", "custom-metrics", "kubelet"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
sdmetrics-prometheus-exporter = "sdmetrics_adapter.prometheus_exporter:main"
sdmetrics-sd-exporter = "sdmetrics_adapter.sd_exporter:main"

[tool.hatch.build.targets.wheel]
packages = ["sdmetrics_adapter"]

[tool.hatch.build.targets.sdist]
include = ["sdmetrics_adapter", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
