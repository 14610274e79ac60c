# actkit

Building blocks for running CI workflow jobs on your own machine.

Python 3.10 or later is needed. The only runtime dependency is
`python-dotenv`. The git helpers call the `git` executable, which must be
on `PATH`.

## What is in it

- **`actkit.runctx`**: `Context`, an immutable chain of values with
  cancellation scopes (`background()`, `with_value`, `value`,
  `with_cancel`, `cancel`, `cancelled`, `check`, which raises
  `ContextCanceled`). Helpers store the dry-run flag (`with_dryrun`,
  `dryrun`), a shared job error container (`with_job_error_container`,
  `set_job_error`, `job_error`) and a logger (`with_logger`, `logger`; the
  default is the `actkit` logger).
- **`actkit.executor`**: `Executor` wraps a callable that takes a context
  and fails by raising. Chain with `then`, guard with `if_`, `if_not` and
  `if_bool`, and add clean-up with `finally_` (an error in the clean-up step
  is raised as `RuntimeError` naming both errors). `new_pipeline_executor`,
  `new_conditional_executor`, `new_error_executor`, `new_info_executor`,
  `new_debug_executor` and `new_parallel_executor` build executors; a
  parallel run lets every executor finish, then raises `ContextCanceled` if
  the context was cancelled, otherwise the first error. A `StepWarning`
  (made with `warningf`) is logged by `then` instead of stopping the chain.
  `Conditional` is a predicate with `not_`.
- **`actkit.cartesian.cartesian_product`**: every combination of one value
  per key, as dictionaries; an empty mapping or an empty list gives none.
- **`actkit.draw`**: `new_pen(style, color)` returns a `Pen` whose
  `draw_boxes(*labels)` and `draw_arrow()` return `Drawing`s with a `width`
  and a `draw(writer, center_on_width)` method. Colours are turned off when
  `CLICOLOR` is `0`.
- **`actkit.line_writer.LineWriter`**: collects written chunks and passes
  each complete line (newline included) to its handlers in order; a handler
  returning a false value stops the chain for that line.
- **`actkit.files`**: `copy_file`, `copy_dir` (copies what it can, prints
  failures and raises the last one) and `get_outbound_ip`.
- **`actkit.git`**: `find_git_revision`, `find_git_ref` (tags before
  branches), `find_git_remote_url`, `find_github_repo`, `find_git_slug` and
  `new_git_clone_executor(CloneInput(...))`, which clones or updates a repo
  and checks out a tag, branch or full SHA. A short SHA raises
  `ShortRefError`; other failures raise `GitError`.
- **`actkit.artifacts`**: `ArtifactRouter(base_dir, fsys).handle(method,
  url, headers, body)` answers the artifact API (prepare, upload, finalize,
  list, list container, download) and returns an `ArtifactResponse`.
  `LocalFS` stores files on disk, and `safe_resolve` keeps every path inside
  the storage directory. Gzip uploads are stored with a `.gz__` suffix and
  served back with `Content-Encoding: gzip`. `serve(ctx, artifact_path,
  addr, port)` runs the router behind an HTTP server in background threads
  and returns a function that stops it; with an empty `artifact_path`
  nothing is started.
- **`actkit.cli_input.Input`**: run options, with paths resolved against the
  working directory (`resolve`, `envfile_path`, `secretfile_path`,
  `workdir_path`, `workflows_location`, `event_file_path`,
  `inputfile_path`) and `new_platforms()`, the default platform images
  overridden by `name=image` entries.
- **`actkit.secrets.new_secrets(secret_list, prompt)`**: upper-cased
  secrets from `NAME=value` entries, from the environment, or from `prompt`.
- **`actkit.config`**: `config_locations`, `read_args_file`, `args`,
  `parse_envs`, `read_envs` (dotenv files) and `default_image_survey`,
  which writes the `-P` platform lines for `Large`, `Medium` or `Micro`.
- **`actkit.notices`**: `get_version_notices` (skipped when
  `ACT_DISABLE_VERSION_CHECK=1`, with ETag caching through `etag_path`,
  `load_notices_etag` and `save_notices_etag`) and `display_notices`.
- **`actkit.report`**: `bug_report(version)` prints and returns system
  details; `load_ignore_rules` and `IgnoreRules.matches` apply `.gitignore`
  patterns; `watch_and_run` reruns a function whenever files that are not
  ignored change, until the context is cancelled.

## Examples

```python
from actkit.executor import new_pipeline_executor
from actkit.runctx import background

steps = []
pipeline = new_pipeline_executor(
    lambda ctx: steps.append("checkout"),
    lambda ctx: steps.append("build"),
)
pipeline(background())
assert steps == ["checkout", "build"]
```

```python
from actkit.cartesian import cartesian_product

combos = cartesian_product({"os": ["linux", "windows"], "python": ["3.10", "3.12"]})
assert len(combos) == 4
```

```python
from actkit.git import find_git_slug

assert find_git_slug("https://github.com/owner/repo.git", "github.com") == ("GitHub", "owner/repo")
```

```python
from actkit.artifacts import safe_resolve

assert safe_resolve("/srv/artifacts", "../../outside/file.txt") == "/srv/artifacts/outside/file.txt"
```

```python
from actkit.line_writer import LineWriter

lines = []
writer = LineWriter(lambda line: lines.append(line) or True)
writer.write(b"hello ")
writer.write(b"world\npartial")
assert lines == ["hello world\n"]
```

## What it does not do

actkit has no command to run and does not read or plan workflow files, run
containers or talk to a container engine. `bug_report` therefore reports
only host and Python details, not container engine details. These pieces
are meant to be used from your own code.