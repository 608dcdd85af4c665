# wasmtrunk

Building blocks for bundling and serving WebAssembly web applications:
asset pipelines that rewrite marked elements of an HTML page, management of
the external tools `sass`, `wasm-bindgen` and `wasm-opt`, a file watcher that
triggers rebuilds, and an aiohttp development server with autoreload and
proxying.

## Asset pipelines

Each pipeline lives in `wasmtrunk.pipelines` and follows the same shape: it is
constructed from a `BuildConfig`, the directory the page lives in, the
element's attributes and a numeric id; `run()` does the work and returns an
output object; `output.finalize(dom)` rewrites the element carrying
`data-trunk-id="<id>"` in a BeautifulSoup document.

| Class | Module | What it does |
| --- | --- | --- |
| `Css` | `pipelines.css` | Copies the `href` stylesheet into `staging_dist` (with a content hash in the name when `filehash` is set) and replaces the element with a stylesheet link. |
| `Icon` | `pipelines.icon` | The same for an icon, replaced with `<link rel="icon" .../>`. |
| `Js` | `pipelines.js` | The same for a script given by `src`, replaced with a `<script src=.../>` element. |
| `Inline` | `pipelines.inline` | Reads the file and replaces the element with its content: HTML as is, CSS in `<style>`, JS in `<script>`. The type comes from the `type` attribute or the file extension. |
| `CopyFile` | `pipelines.copy_file` | Copies the file under its own name and removes the element. |
| `CopyDir` | `pipelines.copy_dir` | Copies the directory recursively, to `data-target-path` if given (which must be relative and free of `..`), and removes the element. |
| `Sass` | `pipelines.sass` | Compiles the file with `sass` (compressed in release mode, expanded otherwise) and either links the written CSS or inlines it when `data-inline` is present. |

```python
from pathlib import Path
from bs4 import BeautifulSoup
from wasmtrunk.pipelines.asset import BuildConfig
from wasmtrunk.pipelines.css import Css

cfg = BuildConfig(staging_dist=Path("dist/.stage"), public_url="/")
dom = BeautifulSoup(
    '<html><head><link data-trunk-id="0" rel="css" href="app.css"></head></html>',
    "html.parser",
)
Css(cfg, Path("."), {"href": "app.css"}, 0).run().finalize(dom)
```

`wasmtrunk.pipelines.asset` also holds `AssetFile`, the `seahash` function
used for file name hashes, the selector helpers `trunk_id_selector` and
`trunk_script_id_selector`, and the DOM helpers `replace_with_html`,
`remove_selected` and `append_html`. Errors are raised as `AssetError`.

### Rust application output

`wasmtrunk.pipelines.rust_output` places an already built application into the
page. `RustAppOutput.finalize` appends a `preload` link for the wasm file and a
`modulepreload` link for the JS loader to `<head>`, and replaces the link
element (or appends to `<body>` when there is none) with a module script that
calls `init`. For `RustAppType.WORKER` it only removes the link element.
Custom markup can be given through `BuildConfig.pattern_preload` and
`pattern_script`, with `{base}`, `{js}`, `{wasm}` and any `pattern_params`;
a parameter whose value starts with `@` is replaced by the contents of the
named file.

```python
from wasmtrunk.pipelines.rust_output import RustAppType, WasmOptLevel, pattern_evaluate

RustAppType.parse("worker")
WasmOptLevel.parse("z")
pattern_evaluate("<script src='{base}{js}'></script>", {"base": "/", "js": "app.js"})
# "<script src='/app.js'></script>"
```

## External tools

`wasmtrunk.tools.get(app, version)` returns the path to an `Application`
(`SASS`, `WASM_BINDGEN`, `WASM_OPT`). A binary on the `PATH` is used when its
`--version` output matches the requested version (or any version when none is
requested). Otherwise the release archive is downloaded into the user cache
directory (`cache_dir()`), the executable and its support files are extracted,
and the result is reused on later calls. `run_command` runs a tool and raises
`ToolError` when it cannot start or exits with a failure.

```python
from wasmtrunk.tools import Application

Application.WASM_OPT.format_version_output("wasm-opt version 101")
# 'version_101'
```

## Watching

`wasmtrunk.watch.WatchSystem(paths, ignored_paths, build, build_done)` watches
the given paths recursively and calls `build` after changes, grouped over a
one-second quiet period. Removed files, ignored paths (and anything below
them) and paths containing `.git` do not trigger a build. After each build
the optional `Broadcast` is signalled. `run(shutdown)` blocks until the
`threading.Event` is set.

## Development server

`wasmtrunk.serve.ServeSystem(cfg, watch)` runs one build, starts the watcher
and serves an aiohttp application described by a `ServeConfig`:

- files from `dist_dir` under `public_url`, falling back to `index.html`;
- a `/_trunk/ws` WebSocket that sends `{"reload": true}` after every build;
- proxies: either `proxy_backend` (with `proxy_rewrite`, `proxy_ws`,
  `proxy_insecure`) or a list of `ProxyConfig` entries.

`await system.run(shutdown)` serves until the event is set; with `open=True`
the browser is pointed at the server. `build_app` assembles the same
application on its own.

Proxies are also usable directly through `wasmtrunk.proxy.ProxyHandlerHttp`
and `wasmtrunk.proxy.ProxyHandlerWebSocket`:

```python
from wasmtrunk.proxy import make_outbound_uri

make_outbound_uri("http://localhost:9000/api/", "/users", "page=2")
# 'http://localhost:9000/api/users?page=2'
```

## What is not included

The package has no driver that reads a source HTML file, finds its
`data-trunk` elements, picks the pipeline for each `rel` value and writes the
finished `index.html`; callers assign ids and run the pipelines themselves.
It does not invoke `cargo`, `wasm-bindgen` or `wasm-opt` to build a Rust
crate: only the injection of already built output is provided. Build hooks
are not run (`PipelineStage` only names the stages). There is no command-line
program; `ServeSystem` and `WatchSystem` are given the build function to call.

## Tests

The test suite uses pytest and pytest-asyncio, available through the `test`
extra.