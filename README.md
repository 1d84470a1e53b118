# wbkit

A small toolkit for building long-running services. Its parts are
independent of one another:

- **`wbkit.errors`** – errors that carry a stack trace, a cause chain and an
  optional error code (`core`), registered code details (`code`), captured
  call sites (`stack`), aggregates of many errors (`aggregate`) and a string
  set (`sets`).
- **`wbkit.log`** – a structured logger built on the standard `logging`
  module (`logger`) and its configuration (`options`).
- **`wbkit.shutdown.manager`** – graceful shutdown: callbacks that run when a
  shutdown manager requests shutdown.
- **`wbkit.db`** – option objects for MySQL, PostgreSQL and Redis, and
  connection helpers for MySQL and Redis.
- **`wbkit.term`** – terminal size of an output stream.
- **`wbkit.cli.flags`** and **`wbkit.app`** – named flag sections for help
  output and an application runner that merges command-line flags,
  environment variables and a configuration file.

Python 3.10 or newer is required.

## Errors with causes and codes

```python
from wbkit.errors import core

original = ValueError("bad input")
err = core.wrap(original, "read failed")

assert str(err) == "read failed"
assert core.cause(err) is original

coded = core.with_code(100101, "user %s not found", "alice")
assert core.is_code(coded, 100101)
```

`core.new` and `core.errorf` create errors that record the caller's stack;
`core.with_stack`, `core.with_message` and `core.wrap_c` annotate an existing
error, and all of them return `None` when given `None`. `core.error_chain`
lists every error from the outermost to the innermost, `core.is_error` and
`core.as_error` search that chain for an instance or a class.

A `WithCode` error renders itself with `format(detail, trace, as_json)`, or
through format specs such as `f"{err:-v}"`, `f"{err:+v}"` and `f"{err:#+v}"`.

Codes are described by a `Coder`, for example a
`wbkit.errors.code.DefaultCoder(code, http, ext, ref)`. Register one with
`wbkit.errors.code.register` (which replaces an earlier entry) or
`must_register` (which raises `ValueError` for a duplicate); find it with
`lookup` or `core.parse_coder`. Code `0` is reserved, and code `1` is the
built-in unknown error.

Several errors can be collected into one exception:

```python
from wbkit.errors.aggregate import new_aggregate, reduce

agg = new_aggregate([ValueError("a"), None, KeyError("b")])
assert len(agg.errors()) == 2
assert reduce(new_aggregate([ValueError("only")])).args == ("only",)
```

`new_aggregate` returns `None` when nothing but `None` was given;
`filter_out`, `flatten`, `create_aggregate_from_message_count_map` and
`aggregate_parallel` cover filtering, nested aggregates, counted messages and
running functions in threads while collecting the exceptions they raise.

## Logging

```python
from wbkit.log import logger
from wbkit.log.options import Options

logger.init(Options(level="debug"))

logger.info("starting %s", "worker")
log = logger.with_name("worker").with_values(job="import")
log.debug("batch done")
logger.flush()
```

Keyword arguments to the logging calls become structured fields. `panic`
logs and then raises `RuntimeError`; `fatal` logs, flushes and exits with
status 1. `v(n)` returns an info logger writing at level `5 - n`, or a
disabled one when that level is not enabled. `for_request(values)` adds the
`requestID`, `username` and `watcher` entries found in a mapping, and
`with_context()` returns a `contextvars.Context` from which `from_context()`
gets that logger back.

`Options` holds the level, the `console` or `json` format, colour, caller
and stack-trace switches, the output and error output paths (`stdout`,
`stderr` or file names) and the logger name. `Options.validate()` lists the
problems with the level and format, `Options.add_flags(parser)` adds the
`--log.*` options to an `argparse` parser, and `Options.build()` installs a
handler on the root logger.

## Graceful shutdown

```python
from wbkit.shutdown.manager import GracefulShutdown

gs = GracefulShutdown()
gs.set_error_handler(lambda err: print("error:", err))
gs.add_shutdown_callback(lambda manager_name: print("closing for", manager_name))
gs.add_shutdown_manager(my_manager)
gs.start()
```

A shutdown manager is any object with `get_name()`, `start(gs)`,
`shutdown_start()` and `shutdown_finish()`. When it calls
`gs.start_shutdown(manager)`, `shutdown_start` runs first, then every
callback runs in its own thread with the manager's name, and once they have
all returned `shutdown_finish` runs. Exceptions from any of these go to the
error handler.

The package ships no shutdown manager of its own: listening for signals
such as SIGINT or SIGTERM, or any other source of shutdown requests, is left
to a manager you write.

## Databases

`wbkit.db.MySQLOptions` and `wbkit.db.PostgresOptions` build a DSN from
host, user, password and database name unless `dsn` is given outright.
`new_mysql` opens a pooled SQLAlchemy engine through the `mysql+pymysql`
dialect, so the PyMySQL driver must be installed alongside, and checks it by
opening one connection. `new_redis` returns a Redis client for a
`RedisOptions` whose `db` is set.

There is no connection helper for PostgreSQL; use
`PostgresOptions.build_dsn()` with a driver of your choice.

## Applications

`wbkit.app.App(name, basename, options=..., run_func=...)` builds an
`argparse` parser from the named flag sections of a `CliOptions` object
(anything with `flags()` and `validate()`) and adds `-c/--config` and
`-h/--help`. `App.run(argv)` then:

1. reads the configuration file given with `--config`, or
   `<basename>.<ext>` from the working directory, where the extension is one
   of json, toml (Python 3.11+), yaml, yml, properties, props, prop, env,
   dotenv or ini; a missing or unreadable file ends the program with
   status 1;
2. fills the options, taking each setting from a flag given on the command
   line, else from an environment variable named
   `<BASENAME>_<KEY>` (upper case, dots and dashes as underscores), else from
   the configuration file, else from the flag's default;
3. calls the options' `complete()` if it has one, raises an `Aggregate` of
   the problems `validate()` reports, and finally calls the run function with
   the basename.

Any error is printed and the program exits with status 1. Help output is
grouped into sections by `wbkit.cli.flags.print_sections`;
`wbkit.app.load_config` and `wbkit.app.print_config` are usable on their own.

## Tests

The test suite uses pytest; install the `test` extra to get it.