"""Asset pipelines, tool management, file watching and a development server for WebAssembly web applications."""

__version__ = "0.1.0"