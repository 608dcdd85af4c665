[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wasmtrunk"
version = "0.1.0"
description = "Asset pipelines, tool management, file watching and a development server for WebAssembly web applications"
requires-python = ">=3.11"
keywords = [
    "wasm",
    "webassembly",
    "bundler",
    "build",
    "wasm-bindgen",
    "wasm-opt",
    "sass",
    "dev-server",
    "proxy",
    "autoreload",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiohttp>=3.9",
    "requests>=2.31",
    "platformdirs>=3.0",
    "beautifulsoup4>=4.12",
    "watchdog>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["wasmtrunk"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP", "SIM"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
ignore_missing_imports = true
