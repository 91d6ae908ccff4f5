"""tapi templating - {{variable}} substitution against an environment."""

import re
from collections.abc import Mapping

from tapi.models import Environment, Request

MAX_PASSES = 5

_TOKEN_RE = re.compile(r"\{\{(.*?)\}\}")


def substitute(text: str, variables: Mapping[str, str] | None) -> str:
    """Resolve {{name}} tokens in text.

    Whitespace inside the braces is ignored. Unknown names are left exactly
    as written, markers included. A value may itself contain tokens; those
    resolve on a later pass. At most MAX_PASSES passes run, so a variable
    that refers to itself ends up literal instead of looping.
    """
    if not variables or "{{" not in text:
        return text

    def _replace(m: re.Match) -> str:
        key = m.group(1).strip()
        if key in variables:
            return str(variables[key])
        return m.group(0)

    result = text
    for _ in range(MAX_PASSES):
        result = _TOKEN_RE.sub(_replace, result)
        if "{{" not in result:
            break
    return result


def apply_environment(
    request: Request,
    environment: Environment | Mapping[str, str] | None,
) -> Request:
    """Return an executable copy of request with variables substituted.

    Covers the URL, body, header values and basic-auth credentials. The
    original request is left untouched.
    """
    resolved = request.copy()
    if environment is None:
        return resolved
    variables = environment.variables if isinstance(environment, Environment) else environment

    resolved.url = substitute(resolved.url, variables)
    resolved.body = substitute(resolved.body, variables)
    resolved.headers = {k: substitute(v, variables) for k, v in resolved.headers.items()}
    if resolved.auth is not None:
        resolved.auth.username = substitute(resolved.auth.username, variables)
        resolved.auth.password = substitute(resolved.auth.password, variables)
    return resolved
