"""Bundle templates: pure functions from a validated Spell to file contents.

Each template takes a :class:`~spellbook.types.Spell` and returns text. None of
them read the clock, the environment or the filesystem, so the same spell
always renders to the same bytes.

The server template emits an ES-module Node.js MCP server. Every user-supplied
string that lands in JavaScript goes through :func:`_js_string` (JSON string
encoding), and every text value that may carry ``{{placeholders}}`` is compiled
by :func:`_text_expr` into either a plain literal or an ``interpolate(...)``
call; there is no other path from spell data into code.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Literal

from spellbook.config import (
    AJV_VERSION,
    BASE_IMAGE,
    ENTRYPOINT,
    MCP_SDK_VERSION,
    PACKAGE_VERSION,
    RUNTIME_DEFAULTS,
)
from spellbook.types import (
    BODY_METHODS,
    PLACEHOLDER_RE,
    HttpAction,
    HttpConfig,
    ScriptAction,
    ScriptConfig,
    Spell,
)

DOCKERFILE = "Dockerfile"
PACKAGE_JSON = "package.json"
SERVER_SOURCE = ENTRYPOINT
README = "README.md"

_ERROR_BODY_LIMIT = 500
_STACK_LINES = 3

# --- Encoding helpers -------------------------------------------------------


def _format_json(obj: Any) -> str:
    if obj is None:
        return "{}"
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _js_safe(text: str) -> str:
    # JSON allows raw U+2028/U+2029 inside strings; older JS parsers do not.
    return text.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")


def _js_string(value: str) -> str:
    return _js_safe(json.dumps(value, ensure_ascii=False))


def _js_json(obj: Any) -> str:
    return _js_safe(_format_json(obj))


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in text.split("\n"))


def package_name(spell: Spell) -> str:
    return f"spell-{spell.name}"


def image_name(spell: Spell) -> str:
    """Docker image tag for the bundle (repository names must be lowercase)."""
    return spell.name.lower()


# --- Text plans: literal segments and interpolation calls --------------------

Segment = tuple[Literal["literal", "placeholder"], str]


def _segments(text: str) -> list[Segment]:
    out: list[Segment] = []
    pos = 0
    for m in PLACEHOLDER_RE.finditer(text):
        if m.start() > pos:
            out.append(("literal", text[pos : m.start()]))
        out.append(("placeholder", m.group(1)))
        pos = m.end()
    if pos < len(text) or not out:
        out.append(("literal", text[pos:]))
    return out


def _text_expr(text: str) -> str:
    """Compile *text* to a JS expression evaluated against ``input``."""
    if all(op == "literal" for op, _ in _segments(text)):
        return _js_string(text)
    return f"interpolate({_js_string(text)}, input)"


def needs_interpolation(spell: Spell) -> bool:
    action = spell.action
    if isinstance(action, HttpAction):
        return action.config.needs_interpolation()
    if isinstance(action, ScriptAction):
        return False
    raise TypeError(f"unsupported action: {action!r}")


# --- Dockerfile ---------------------------------------------------------------


def dockerfile(spell: Spell) -> str:
    return (
        f"FROM {BASE_IMAGE}\n"
        "WORKDIR /app\n"
        f"COPY {PACKAGE_JSON} ./\n"
        "RUN npm install --omit=dev\n"
        "COPY . .\n"
        f'CMD ["node", "{ENTRYPOINT}"]\n'
    )


# --- package.json -----------------------------------------------------------


def package_json(spell: Spell) -> str:
    pkg = {
        "name": package_name(spell),
        "version": PACKAGE_VERSION,
        "type": "module",
        "main": ENTRYPOINT,
        "dependencies": {
            "@modelcontextprotocol/sdk": MCP_SDK_VERSION,
            "ajv": AJV_VERSION,
        },
    }
    return _format_json(pkg) + "\n"


# --- Server source: static helpers -------------------------------------------

_IMPORTS = """\
import { Server } from '@modelcontextprotocol/sdk/server/index.js';
import { StdioServerTransport } from '@modelcontextprotocol/sdk/server/stdio.js';
import {
  CallToolRequestSchema,
  ListToolsRequestSchema
} from '@modelcontextprotocol/sdk/types.js';
import Ajv from 'ajv';
"""

_INTERPOLATE_FN = r"""function interpolate(template, vars) {
  return template.replace(/\{\{(\w+)\}\}/g, (_, key) => {
    return vars[key] !== undefined ? String(vars[key]) : '';
  });
}
"""

_READ_BODY_FN = r"""async function readBodyWithLimit(response, maxBytes) {
  const reader = response.body?.getReader();
  if (!reader) {
    const text = await response.text();
    const size = new TextEncoder().encode(text).byteLength;
    if (size > maxBytes) {
      throw new Error(`Response too large: ${size} bytes (max: ${maxBytes})`);
    }
    return text;
  }

  const decoder = new TextDecoder();
  const chunks = [];
  let total = 0;

  while (true) {
    const { done, value } = await reader.read();
    if (done) break;
    total += value.byteLength;
    if (total > maxBytes) {
      await reader.cancel();
      throw new Error(`Response too large: exceeded ${maxBytes} bytes`);
    }
    chunks.push(decoder.decode(value, { stream: true }));
  }
  chunks.push(decoder.decode());

  return chunks.join('');
}
"""

_FORMAT_ERRORS_FN = r"""function formatErrors(errors) {
  return (errors || []).map(e => `${e.instancePath || '/'} ${e.message}`).join(', ');
}
"""

_OUTPUT_CHECK = r"""    if (!validateOutput(result)) {
      throw new Error(`Output validation failed: ${formatErrors(validateOutput.errors)}`);
    }"""

_NO_OUTPUT_CHECK = "    // No output schema properties declared: output is not validated"

_CALL_HANDLER_HEAD = r"""server.setRequestHandler(CallToolRequestSchema, async (request) => {
  if (request.params.name !== TOOL_NAME) {
    throw new Error(`Unknown tool: ${request.params.name}`);
  }

  try {
    const input = request.params.arguments || {};

    if (!validateInput(input)) {
      throw new Error(`Invalid input: ${formatErrors(validateInput.errors)}`);
    }

    const result = await executeAction(input);

"""

_CALL_HANDLER_TAIL = (
    r"""

    return {
      content: [{
        type: 'text',
        text: JSON.stringify(result, null, 2)
      }]
    };
  } catch (error) {
    const message = error instanceof Error ? error.message : String(error);
    const details = error instanceof Error && error.stack
      ? error.stack.split('\n').slice(0, """
    + str(_STACK_LINES)
    + r""").join('\n')
      : undefined;
    return {
      content: [{
        type: 'text',
        text: JSON.stringify({ error: message, details }, null, 2)
      }],
      isError: true
    };
  }
});
"""
)

_TRANSPORT = """\
const transport = new StdioServerTransport();
await server.connect(transport);
"""


# --- Server source: action bodies --------------------------------------------


def _fetch_options(config: HttpConfig) -> list[str]:
    options = ["signal: controller.signal", f"method: {_js_string(config.method)}"]
    if config.headers:
        entries = [f"{_js_string(k)}: {_text_expr(v)}" for k, v in config.headers.items()]
        options.append("headers: {\n" + ",\n".join("  " + e for e in entries) + "\n}")
    if config.body is not None and config.method in BODY_METHODS:
        options.append(f"body: {_text_expr(config.body)}")
    return options


def _http_action(config: HttpConfig) -> str:
    options = _indent(",\n".join(_fetch_options(config)), "      ")
    return (
        """\
  const controller = new AbortController();
  const timeout = setTimeout(() => controller.abort(), HTTP_TIMEOUT_MS);

  try {
"""
        + f"    const targetUrl = {_text_expr(config.url)};\n"
        + r"""
    const parsedUrl = new URL(targetUrl);
    if (!['http:', 'https:'].includes(parsedUrl.protocol)) {
      throw new Error(`Protocol not allowed: ${parsedUrl.protocol}. Use http: or https:`);
    }
    if (!ALLOWED_HOSTS.includes('*') &&
        !ALLOWED_HOSTS.includes(parsedUrl.host) &&
        !ALLOWED_HOSTS.includes(parsedUrl.hostname)) {
      throw new Error(`Host not allowed: ${parsedUrl.host}. Allowed: ${ALLOWED_HOSTS.join(', ')}`);
    }

    const response = await fetch(targetUrl, {
"""
        + options
        + r"""
    });

    const contentLength = response.headers.get('content-length');
    if (contentLength && parseInt(contentLength, 10) > MAX_RESPONSE_SIZE) {
      throw new Error(`Response too large: ${contentLength} bytes (max: ${MAX_RESPONSE_SIZE})`);
    }

    if (!response.ok) {
      const errorBody = await readBodyWithLimit(response, MAX_RESPONSE_SIZE)
        .catch(() => 'Unable to read error body');
      throw new Error(`HTTP ${response.status} ${response.statusText}: ${errorBody.slice(0, """
        + str(_ERROR_BODY_LIMIT)
        + r""")}`);
    }

    const text = await readBodyWithLimit(response, MAX_RESPONSE_SIZE);

    try {
      return JSON.parse(text);
    } catch {
      return { data: text };
    }
  } catch (err) {
    if (err && err.name === 'AbortError') {
      throw new Error(`Request timed out after ${HTTP_TIMEOUT_MS}ms`);
    }
    throw err;
  } finally {
    clearTimeout(timeout);
  }"""
    )


def _script_action(config: ScriptConfig) -> str:
    return (
        """\
  // Runs with full Node.js privileges. Deploy trusted code only.
  const AsyncFunction = Object.getPrototypeOf(async function () {}).constructor;
  let fn;
  try {
"""
        + f"    fn = new AsyncFunction('input', {_js_string(config.code)});\n"
        + r"""  } catch (err) {
    if (err instanceof SyntaxError) {
      throw new Error(`Script syntax error: ${err.message}`);
    }
    throw err;
  }

  let timeout;
  try {
    const execution = Promise.resolve().then(() => fn(input));
    const timer = new Promise((_, reject) => {
      timeout = setTimeout(
        () => reject(new Error(`Script timed out after ${SCRIPT_TIMEOUT_MS}ms`)),
        SCRIPT_TIMEOUT_MS
      );
    });
    const result = await Promise.race([execution, timer]);

    if (result === undefined) {
      return { success: true };
    }
    let serialized;
    try {
      serialized = JSON.stringify(result);
    } catch (err) {
      throw new Error(`Script result is not JSON-serializable: ${err.message}`);
    }
    if (serialized === undefined) {
      throw new Error(`Script result is not JSON-serializable: ${typeof result}`);
    }
    return result;
  } finally {
    if (timeout) clearTimeout(timeout);
  }"""
    )


def _action_body(spell: Spell) -> str:
    action = spell.action
    if isinstance(action, HttpAction):
        return _http_action(action.config)
    if isinstance(action, ScriptAction):
        return _script_action(action.config)
    raise TypeError(f"unsupported action: {action!r}")


def _limits(spell: Spell) -> str:
    d = RUNTIME_DEFAULTS
    if isinstance(spell.action, HttpAction):
        return (
            f"const ALLOWED_HOSTS = process.env.{d.allowed_hosts_env}\n"
            f"  ? process.env.{d.allowed_hosts_env}.split(',').map(h => h.trim()).filter(Boolean)\n"
            f"  : [{_js_string(d.allowed_hosts)}];\n"
            f"const MAX_RESPONSE_SIZE = parseInt(process.env.{d.max_response_size_env}, 10)"
            f" || {d.max_response_size};\n"
            f"const HTTP_TIMEOUT_MS = parseInt(process.env.{d.http_timeout_env}, 10)"
            f" || {d.http_timeout_ms};\n"
        )
    if isinstance(spell.action, ScriptAction):
        return (
            f"const SCRIPT_TIMEOUT_MS = parseInt(process.env.{d.script_timeout_env}, 10)"
            f" || {d.script_timeout_ms};\n"
        )
    raise TypeError(f"unsupported action: {spell.action!r}")


def server_code(spell: Spell) -> str:
    """Render ``index.js``: one MCP tool named after the spell, over stdio."""
    validate_output = spell.has_output_properties()

    parts = [
        _IMPORTS,
        "",
        f"const TOOL_NAME = {_js_string(spell.name)};",
        f"const TOOL_DESCRIPTION = {_js_string(spell.description)};",
        "",
        "// JSON Schema validation using Ajv",
        "const ajv = new Ajv({ allErrors: true, coerceTypes: true });",
        f"const inputSchema = {_js_json(spell.input_schema)};",
        f"const outputSchema = {_js_json(spell.output_schema)};",
        "const validateInput = ajv.compile(inputSchema);",
    ]
    if validate_output:
        parts.append("const validateOutput = ajv.compile(outputSchema);")
    parts += ["", "// Runtime limits, configurable via environment variables", _limits(spell)]

    if needs_interpolation(spell):
        parts.append(_INTERPOLATE_FN)
    if isinstance(spell.action, HttpAction):
        parts.append(_READ_BODY_FN)
    parts.append(_FORMAT_ERRORS_FN)

    parts += [
        "const server = new Server({",
        "  name: TOOL_NAME,",
        f"  version: {_js_string(PACKAGE_VERSION)}",
        "}, {",
        "  capabilities: { tools: {} }",
        "});",
        "",
        "server.setRequestHandler(ListToolsRequestSchema, async () => ({",
        "  tools: [{",
        "    name: TOOL_NAME,",
        "    description: TOOL_DESCRIPTION,",
        "    inputSchema",
        "  }]",
        "}));",
        "",
        _CALL_HANDLER_HEAD
        + (_OUTPUT_CHECK if validate_output else _NO_OUTPUT_CHECK)
        + _CALL_HANDLER_TAIL,
        "async function executeAction(input) {",
        _action_body(spell),
        "}",
        "",
        _TRANSPORT,
    ]
    return "\n".join(parts)


# --- README -----------------------------------------------------------------


def _seconds(ms: int) -> str:
    return f"{ms / 1000:g} seconds"


def _mib(n: int) -> str:
    if n % (1024 * 1024) == 0:
        return f"{n // (1024 * 1024)} MiB"
    return f"{n} bytes"


def _security_notice(spell: Spell) -> str:
    d = RUNTIME_DEFAULTS
    if isinstance(spell.action, ScriptAction):
        return (
            "## Security Notice\n\n"
            "This tool executes JavaScript code with full Node.js privileges. Only run this "
            "tool if you trust the source code. For production use with untrusted inputs, "
            "run it in a sandboxed runtime or an isolated container.\n\n"
            f"- Script timeout: {_seconds(d.script_timeout_ms)} (`{d.script_timeout_env}`)"
        )
    if isinstance(spell.action, HttpAction):
        return (
            "## Security Notice\n\n"
            "This tool makes HTTP requests to external services. The following security "
            "measures are in place:\n\n"
            f"- Request timeout: {_seconds(d.http_timeout_ms)} (`{d.http_timeout_env}`)\n"
            f"- Response size limit: {_mib(d.max_response_size)} (`{d.max_response_size_env}`)\n"
            "- Only `http:` and `https:` URLs are requested\n"
            f"- Host allowlist: set `{d.allowed_hosts_env}` to restrict requests to specific hosts"
        )
    raise TypeError(f"unsupported action: {spell.action!r}")


def readme(spell: Spell) -> str:
    d = RUNTIME_DEFAULTS
    image = image_name(spell)
    registration = {
        "mcpServers": {
            spell.name: {
                "command": "docker",
                "args": ["run", "--rm", "-i", image],
            }
        }
    }
    return f"""# {spell.name}

{spell.description}

{_security_notice(spell)}

## Installation

Build the `{package_name(spell)}` image:

```bash
docker build -t {image} .
```

## Usage

Add to your MCP client configuration (for Kiro: `.kiro/settings/mcp.json`):

```json
{_format_json(registration)}
```

## Input Schema

```json
{_format_json(spell.input_schema)}
```

## Output Schema

```json
{_format_json(spell.output_schema)}
```

## Configuration

Configure via environment variables:

| Variable | Default | Description |
|----------|---------|-------------|
| `{d.allowed_hosts_env}` | `{d.allowed_hosts}` (all) | Comma-separated list of allowed hosts |
| `{d.max_response_size_env}` | `{d.max_response_size}` | Max response size in bytes ({_mib(d.max_response_size)}) |
| `{d.http_timeout_env}` | `{d.http_timeout_ms}` | HTTP request timeout in milliseconds |
| `{d.script_timeout_env}` | `{d.script_timeout_ms}` | Script execution timeout in milliseconds |

Example:

```bash
{d.allowed_hosts_env}=api.github.com,api.example.com docker run --rm -i {image}
```
"""


TEMPLATES: dict[str, Callable[[Spell], str]] = {
    DOCKERFILE: dockerfile,
    PACKAGE_JSON: package_json,
    SERVER_SOURCE: server_code,
    README: readme,
}
