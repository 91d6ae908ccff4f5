"""tapi output - render execution results for the terminal."""

import json


def format_output(
    result,  # RequestResult from executor.py
    verbose: bool = False,
    raw: bool = False,
) -> str:
    """Format the request result for CLI output.

    Default layout:
        STATUS: 200 OK
        TIME: 45ms
        SIZE: 1.2 KB
        BODY:
        {...}

    verbose adds a HEADERS section, raw prints the body alone.
    """
    if result.error:
        return f"ERROR: {result.error}"

    body = result.body
    if raw:
        if isinstance(body, dict | list):
            return json.dumps(body, indent=2)
        return str(body) if body is not None else ""

    status = f"{result.status_code} {result.reason}".rstrip()
    lines = [
        f"STATUS: {status}",
        f"TIME: {int(result.elapsed_ms)}ms",
    ]
    size = f"SIZE: {result.format_size()}"
    if result.truncated:
        size += " (truncated)"
    lines.append(size)

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    if body is not None and body != "":
        lines.append("BODY:")
        if isinstance(body, dict | list):
            lines.append(json.dumps(body, indent=2))
        else:
            lines.append(str(body))

    return "\n".join(lines)
