"""tapi CLI - store, run, import and export HTTP requests from a terminal."""

import sys
from pathlib import Path

import click

from tapi.errors import StorageError, TapiError

TOOL_HELP = """\
tapi - terminal API client.

Keeps named collections of HTTP requests as YAML under ~/.tapi/, imports
them from Postman, Insomnia or cURL, exports them back to cURL and runs
them with environment variables applied.

\b
MODES
─────
  Run:          tapi -C COLLECTION -r REQUEST [options]
  cURL export:  tapi -C COLLECTION -r REQUEST --curl
  Import:       tapi --import FILE
                tapi --import-curl "curl ..."
  Export YAML:  tapi -C COLLECTION --export FILE
  List:         tapi --list | tapi -C COLLECTION | tapi --envs
  Setup:        tapi --init

\b
COLLECTIONS (~/.tapi/collections/*.yaml)
────────────────────────────────────────
  \b
  name: Demo Collection
  base_url: https://httpbin.org
  requests:
    - name: Get Status
      method: GET
      url: /status/:code          # :code is a path parameter
    - name: Post JSON
      method: POST
      url: /post?source={{source}}
      headers:
        Content-Type: application/json
      body: '{"message": "Hello TAPI!"}'
      auth:                       # optional basic auth
        username: admin
        password: "{{password}}"

  Relative request URLs are resolved against base_url. A URL starting
  with / replaces the base URL's path.

\b
PATH AND QUERY PARAMETERS
─────────────────────────
  tapi -C demo -r "Get Status" -p code=418
  tapi -C demo -r "Get IP" -q verbose=1 -q tag=a -q tag=b

  -p fills :name segments for this run only; the stored URL keeps them.
  -q appends query parameters to the URL.

\b
ENVIRONMENTS (~/.tapi/environments/*.yaml)
──────────────────────────────────────────
  \b
  name: staging
  variables:
    host: staging.example.com
    password: s3cret

  {{name}} tokens in the URL, headers, body and auth are replaced with
  variables from -e ENV or --env-file FILE (.env or YAML). -v key=value
  overrides both. Unknown tokens are left as written. Variables may refer
  to other variables, up to 5 levels deep.

\b
IMPORT
──────
  Postman v2.1 collections (folders are flattened), Insomnia v4 exports
  and single cURL commands are detected automatically.

\b
CONFIG (~/.tapi/config.yaml or .tapi.yaml in CWD)
─────────────────────────────────────────────────
  \b
  timeout: 30                     # seconds
  default_headers:                # added unless the request sets them
    User-Agent: tapi
  log_file: ~/.tapi/tapi.log
  log_level: INFO

\b
OUTPUT
──────
  STATUS: 200 OK
  TIME: 45ms
  SIZE: 312 B
  BODY:
  {"origin": "1.2.3.4"}

  --verbose adds response headers, --raw prints the body alone.
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.option("-C", "--collection", "collection_name", default=None, help="Collection name.")
@click.option("-r", "--request", "request_name", default=None, help="Request name within the collection.")
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .tapi.yaml in CWD, then ~/.tapi/config.yaml.",
)
@click.option("-e", "--env", "env_name", default=None, help="Stored environment to apply.")
@click.option(
    "--env-file",
    "env_file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Environment from a .env or YAML file.",
)
@click.option(
    "-v",
    "--var",
    multiple=True,
    help="Variable as key=value. Overrides environment variables. Repeatable.",
)
@click.option(
    "-p",
    "--param",
    multiple=True,
    help="Path parameter value as name=value for :name segments. Repeatable.",
)
@click.option(
    "-q",
    "--query",
    multiple=True,
    help="Extra query parameter as key=value. Repeatable.",
)
@click.option(
    "-H",
    "--header",
    multiple=True,
    help="HTTP header as 'Name: Value'. Repeatable.",
)
@click.option("--curl", "as_curl", is_flag=True, default=False, help="Print the request as a cURL command.")
@click.option(
    "--import",
    "import_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Import a Postman, Insomnia or cURL file.",
)
@click.option("--import-curl", "import_curl", default=None, help="Import a cURL command string.")
@click.option(
    "--export",
    "export_dest",
    default=None,
    metavar="FILE",
    help="Copy the collection YAML (-C) to FILE.",
)
@click.option("--list", "show_list", is_flag=True, default=False, help="List collections.")
@click.option("--envs", "show_envs", is_flag=True, default=False, help="List environments.")
@click.option(
    "--delete-collection",
    "delete_name",
    default=None,
    metavar="NAME",
    help="Delete a stored collection.",
)
@click.option(
    "--init",
    "do_init",
    is_flag=True,
    default=False,
    help="Create ~/.tapi/ and a demo collection.",
)
@click.option("--timeout", type=int, default=None, help="Request timeout in seconds. Default: 30.")
@click.option("--verbose", is_flag=True, default=False, help="Include response headers in output.")
@click.option("--raw", is_flag=True, default=False, help="Output the response body only.")
def main(
    collection_name,
    request_name,
    config_file,
    env_name,
    env_file,
    var,
    param,
    query,
    header,
    as_curl,
    import_path,
    import_curl,
    export_dest,
    show_list,
    show_envs,
    delete_name,
    do_init,
    timeout,
    verbose,
    raw,
):
    """Run, import and export stored HTTP requests."""
    from tapi.core import load_config, resolve_config_path, setup_logging, timeout_seconds
    from tapi.executor import execute_request
    from tapi.output import format_output

    config = load_config(resolve_config_path(config_file))
    setup_logging(config)

    try:
        if do_init:
            _cmd_init()
            return

        if import_path:
            _cmd_import_file(import_path)
            return

        if import_curl:
            _cmd_import_curl(import_curl)
            return

        if show_list:
            _cmd_list()
            return

        if show_envs:
            _cmd_envs()
            return

        if delete_name:
            _cmd_delete(delete_name)
            return

        if collection_name and export_dest:
            _cmd_export(collection_name, export_dest)
            return

        if collection_name and request_name:
            variables = _collect_variables(env_name, env_file, var)
            base_url, req = _build_request(
                collection_name,
                request_name,
                variables,
                dict(_parse_pairs(param, "--param")),
                _parse_pairs(query, "--query"),
                _parse_headers(header),
            )
            if as_curl:
                _cmd_curl(base_url, req)
            else:
                _cmd_run(
                    base_url,
                    req,
                    timeout or timeout_seconds(config),
                    config["default_headers"],
                    verbose,
                    raw,
                    execute_request,
                    format_output,
                )
            return

        if collection_name:
            _cmd_show_collection(collection_name)
            return

    except TapiError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    # Nothing matched, show help
    ctx = click.get_current_context()
    click.echo(ctx.get_help())
    ctx.exit(1)


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_init():
    """Create the storage directories and the demo collection."""
    from tapi import storage

    for sub in (storage.COLLECTIONS, storage.ENVIRONMENTS):
        d = storage.storage_path(sub)
        if d.exists():
            click.echo(f"  {d}/ (skipped, already exists)")
        else:
            storage.ensure_dir(d)
            click.echo(f"  {d}/ (created)")

    if storage.load_collections():
        click.echo("  demo collection (skipped, collections already exist)")
    else:
        path = storage.create_demo_collection()
        click.echo(f"  {path} (created)")

    click.echo("\nReady. Run 'tapi --list' to see your collections.")


def _report_import(collections):
    from tapi.storage import save_collection

    for col in collections:
        path = save_collection(col)
        click.echo(f"  {col.name} ({len(col.requests)} requests) -> {path}")
    click.echo(f"Imported {len(collections)} collection(s).")


def _cmd_import_file(import_path):
    from tapi.importer import import_file

    _report_import(import_file(Path(import_path).expanduser()))


def _cmd_import_curl(curl_str):
    from tapi.importer import import_bytes

    _report_import(import_bytes(curl_str))


def _cmd_list():
    from tapi.storage import COLLECTIONS, load_collections, storage_path

    collections = load_collections()
    if not collections:
        click.echo(f"No collections found in: {storage_path(COLLECTIONS)}")
        click.echo("Run 'tapi --init' for a demo or 'tapi --import FILE'.")
        return
    click.echo(f"{len(collections)} collection(s):\n")
    for col in collections:
        _echo_collection(col)


def _cmd_show_collection(name):
    from tapi.storage import get_collection

    _echo_collection(get_collection(name))


def _echo_collection(col):
    label = f"  {col.name} - {col.base_url}" if col.base_url else f"  {col.name}"
    click.echo(label)
    for req in col.requests:
        click.echo(f"    {req.method:<7} {req.name}  {req.url}")
    click.echo()


def _cmd_envs():
    from tapi.storage import ENVIRONMENTS, load_environments, storage_path

    envs = load_environments()
    if not envs:
        click.echo(f"No environments found in: {storage_path(ENVIRONMENTS)}")
        return
    for env in envs:
        keys = ", ".join(sorted(env.variables)) or "(no variables)"
        click.echo(f"  {env.name}: {keys}")


def _cmd_delete(name):
    from tapi.storage import delete_collection

    path = delete_collection(name)
    click.echo(f"Deleted {path}")


def _cmd_export(collection_name, dest):
    from tapi.storage import export_collection, get_collection

    col = get_collection(collection_name)
    path = export_collection(col.name, dest)
    click.echo(f"Exported to {path}")


def _cmd_curl(base_url, req):
    from tapi.exporter import export_curl

    click.echo(export_curl(req, base_url))


def _cmd_run(
    base_url,
    req,
    timeout,
    default_headers,
    verbose,
    raw,
    execute_request,
    format_output,
):
    result = execute_request(
        request=req,
        base_url=base_url,
        timeout=timeout,
        default_headers=default_headers,
    )
    if result.error:
        click.echo(f"ERROR: {result.error}", err=True)
        sys.exit(1)
    click.echo(format_output(result, verbose=verbose, raw=raw))


# ── Helpers ──────────────────────────────────────────────────────────────


def _collect_variables(env_name, env_file, var_specs):
    """Merge environment variables: --env, then --env-file, then -v."""
    from tapi.core import load_environment_file
    from tapi.storage import get_environment

    variables = {}
    if env_name:
        variables.update(get_environment(env_name).variables)
    if env_file:
        variables.update(load_environment_file(env_file).variables)
    variables.update(dict(_parse_pairs(var_specs, "--var")))
    return variables


def _build_request(collection_name, request_name, variables, path_values, query_pairs, headers):
    """Load a stored request and build the copy that is actually sent.

    Path parameters are filled in and extra query rows appended through
    URLParams, then environment variables are applied to the request and
    the collection base URL. The stored request is never modified.

    Returns (base_url, request).
    """
    from tapi.params import URLParams
    from tapi.storage import get_collection, get_request
    from tapi.templating import apply_environment, substitute

    collection = get_collection(collection_name)
    stored = get_request(collection, request_name)

    params = URLParams(stored.url)
    for name, value in path_values.items():
        if not params.set_path_value(name, value):
            raise StorageError(f"request {stored.name!r} has no path parameter ':{name}'")
    for key, value in query_pairs:
        params.add_query_param(key, value)

    target = stored.copy()
    target.url = params.target_url()
    target.headers.update(headers)
    return substitute(collection.base_url, variables), apply_environment(target, variables)


def _parse_pairs(specs, option):
    """Parse key=value specs into an ordered list of (key, value)."""
    pairs = []
    for spec in specs:
        if "=" not in spec:
            raise click.BadParameter(f"expected key=value, got {spec!r}", param_hint=option)
        k, v = spec.split("=", 1)
        pairs.append((k.strip(), v))
    return pairs


def _parse_headers(header_tuples):
    """Parse -H 'Name: Value' tuples into a dict."""
    headers = {}
    for h in header_tuples:
        if ":" in h:
            k, v = h.split(":", 1)
            headers[k.strip()] = v.strip()
    return headers
