from __future__ import annotations

import json
import shutil
import subprocess

import pytest
from conftest import http_action, http_candidate, script_candidate

from spellbook import templates
from spellbook.catalog import instantiate_example
from spellbook.config import RUNTIME_DEFAULTS
from spellbook.validator import validate_spell

GITHUB_URL = "https://api.github.com/repos/{{owner}}/{{repo}}/issues"


def _spell(**overrides):
    return validate_spell(http_candidate(**overrides))


# --- Dockerfile / package.json ----------------------------------------------


def test_dockerfile_directives() -> None:
    text = templates.dockerfile(_spell())
    lines = text.splitlines()
    assert lines == [
        "FROM node:20-alpine",
        "WORKDIR /app",
        "COPY package.json ./",
        "RUN npm install --omit=dev",
        "COPY . .",
        'CMD ["node", "index.js"]',
    ]
    # Independent of spell fields
    assert text == templates.dockerfile(validate_spell(script_candidate(name="other")))


def test_package_json_is_valid_and_derived_from_name() -> None:
    pkg = json.loads(templates.package_json(_spell(name="My-Tool")))
    assert pkg["name"] == "spell-My-Tool"
    assert pkg["version"] == "1.0.0"
    assert pkg["type"] == "module"
    assert pkg["main"] == "index.js"
    assert set(pkg["dependencies"]) == {"@modelcontextprotocol/sdk", "ajv"}


# --- server source: interpolation -------------------------------------------


def test_github_fetcher_interpolates_url() -> None:
    spell = _spell(name="github-fetcher", action=http_action(GITHUB_URL))
    code = templates.server_code(spell)
    assert "function interpolate(template, vars)" in code
    assert f"const targetUrl = interpolate({json.dumps(GITHUB_URL)}, input);" in code
    assert "# github-fetcher" in templates.readme(spell)


def test_no_placeholders_means_no_interpolation_helper() -> None:
    spell = _spell(
        action=http_action(
            "https://api.example.com/items",
            method="POST",
            headers={"Accept": "application/json"},
            body='{"static": true}',
        )
    )
    code = templates.server_code(spell)
    assert "function interpolate" not in code
    assert "interpolate(" not in code
    assert 'const targetUrl = "https://api.example.com/items";' in code
    assert 'body: "{\\"static\\": true}"' in code


def test_body_placeholder_alone_triggers_helper() -> None:
    spell = _spell(
        action=http_action("https://api.example.com/items", method="POST", body='{"q": "{{q}}"}')
    )
    code = templates.server_code(spell)
    assert "function interpolate" in code
    assert 'const targetUrl = "https://api.example.com/items";' in code
    assert 'body: interpolate("{\\"q\\": \\"{{q}}\\"}", input)' in code


def test_only_placeholder_headers_are_wrapped() -> None:
    spell = _spell(
        action=http_action(
            "https://api.example.com/items",
            headers={"Authorization": "Bearer {{token}}", "Accept": "application/json"},
        )
    )
    code = templates.server_code(spell)
    assert "function interpolate" in code
    assert '"Authorization": interpolate("Bearer {{token}}", input)' in code
    assert '"Accept": "application/json"' in code


def test_malformed_braces_are_left_literal() -> None:
    spell = _spell(
        action=http_action("https://api.example.com/items", method="PUT", body="{{ not a key }}")
    )
    code = templates.server_code(spell)
    assert "function interpolate" not in code
    assert 'body: "{{ not a key }}"' in code


@pytest.mark.parametrize("method", ["GET", "DELETE"])
def test_body_only_sent_for_body_methods(method: str) -> None:
    spell = _spell(action=http_action("https://api.example.com", method=method, body="{{q}}"))
    code = templates.server_code(spell)
    assert "body:" not in code
    assert f'method: "{method}"' in code


# --- server source: action kinds --------------------------------------------


def test_http_spell_has_fetch_logic_and_no_script_logic() -> None:
    code = templates.server_code(_spell())
    assert "await fetch(targetUrl" in code
    assert "async function readBodyWithLimit(response, maxBytes)" in code
    assert "ALLOWED_HOSTS" in code
    assert "['http:', 'https:']" in code
    assert "errorBody.slice(0, 500)" in code
    assert "return { data: text };" in code
    assert "AsyncFunction" not in code
    assert "SCRIPT_TIMEOUT_MS" not in code


def test_script_spell_embeds_code_and_has_no_fetch_logic() -> None:
    source = "const { a, b } = input;\nreturn { sum: a + b, note: 'it\\'s \"fine\"' };"
    code = templates.server_code(validate_spell(script_candidate(code=source)))
    assert f"fn = new AsyncFunction('input', {json.dumps(source)});" in code
    assert "Script syntax error" in code
    assert "Script timed out after" in code
    assert "return { success: true };" in code
    assert "fetch(" not in code
    assert "readBodyWithLimit" not in code
    assert "function interpolate" not in code


def test_script_code_cannot_break_out_of_the_literal() -> None:
    source = "return 1; }); process.exit(1); (function() {"
    code = templates.server_code(validate_spell(script_candidate(code=source)))
    assert json.dumps(source) in code
    assert "\nprocess.exit(1)" not in code


# --- server source: tool surface and validation -----------------------------


def test_server_advertises_single_tool_with_verbatim_schema() -> None:
    schema = {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}
    spell = _spell(name="search-tool", inputSchema=schema)
    code = templates.server_code(spell)
    assert 'const TOOL_NAME = "search-tool";' in code
    assert f"const inputSchema = {json.dumps(schema, indent=2)};" in code
    assert code.count("name: TOOL_NAME") == 2  # server identity and the one tool
    assert "if (request.params.name !== TOOL_NAME)" in code
    assert "Invalid input:" in code
    assert "isError: true" in code


def test_empty_output_properties_skip_output_validation() -> None:
    code = templates.server_code(_spell(outputSchema={"type": "object", "properties": {}}))
    assert "Output validation failed" not in code
    assert "validateOutput" not in code


def test_declared_output_properties_enable_output_validation() -> None:
    schema = {"type": "object", "properties": {"result": {"type": "number"}}}
    code = templates.server_code(_spell(outputSchema=schema))
    assert "const validateOutput = ajv.compile(outputSchema);" in code
    assert "Output validation failed" in code


def test_strings_are_escaped_for_javascript() -> None:
    description = (
        "Quotes ' and \" and a backslash \\ and a newline\nand a line separator \u2028 "
        "plus </script> and ${template} to make sure nothing escapes its string literal."
    )
    code = templates.server_code(_spell(description=description))
    prefix = "const TOOL_DESCRIPTION = "
    line = next(ln for ln in code.splitlines() if ln.startswith(prefix))
    literal = line[len(prefix) : -1]
    assert "\u2028" not in literal
    assert "\\u2028" in literal
    assert json.loads(literal) == description


# --- README -----------------------------------------------------------------


def test_readme_sections_and_name_consistency() -> None:
    spell = validate_spell(
        http_candidate(name="weather-api", outputSchema={"type": "object", "x-note": "kept"})
    )
    text = templates.readme(spell)
    assert text.startswith("# weather-api\n")
    assert spell.description in text
    assert "docker build -t weather-api ." in text
    assert "`spell-weather-api`" in text
    assert '"weather-api": {' in text
    assert "## Input Schema" in text and "## Output Schema" in text
    assert json.dumps(spell.input_schema, indent=2) in text
    assert json.dumps(spell.output_schema, indent=2) in text


def test_readme_security_notice_depends_on_action() -> None:
    http_text = templates.readme(_spell())
    script_text = templates.readme(validate_spell(script_candidate()))
    assert "makes HTTP requests" in http_text
    assert "Request timeout: 15 seconds" in http_text
    assert "Response size limit: 10 MiB" in http_text
    assert "full Node.js privileges" in script_text
    assert "makes HTTP requests" not in script_text


def test_readme_defaults_match_compiled_defaults() -> None:
    d = RUNTIME_DEFAULTS
    http = _spell()
    script = validate_spell(script_candidate())
    http_code = templates.server_code(http)
    script_code = templates.server_code(script)
    text = templates.readme(http)

    assert f"`{d.max_response_size_env}` | `{d.max_response_size}`" in text
    assert f"`{d.http_timeout_env}` | `{d.http_timeout_ms}`" in text
    assert f"`{d.script_timeout_env}` | `{d.script_timeout_ms}`" in text
    assert f"`{d.allowed_hosts_env}` | `{d.allowed_hosts}`" in text
    assert f"|| {d.max_response_size};" in http_code
    assert f"|| {d.http_timeout_ms};" in http_code
    assert f': ["{d.allowed_hosts}"];' in http_code
    assert f"|| {d.script_timeout_ms};" in script_code


def test_image_name_is_lowercase_but_registration_key_is_exact() -> None:
    spell = _spell(name="GitHub-Fetcher")
    text = templates.readme(spell)
    assert "# GitHub-Fetcher" in text
    assert "docker build -t github-fetcher ." in text
    assert '"GitHub-Fetcher": {' in text
    assert 'const TOOL_NAME = "GitHub-Fetcher";' in templates.server_code(spell)


def test_templates_are_pure() -> None:
    spell = instantiate_example("weather-api", spell_id="123e4567-e89b-12d3-a456-426614174000")
    first = {name: fn(spell) for name, fn in templates.TEMPLATES.items()}
    second = {name: fn(spell) for name, fn in templates.TEMPLATES.items()}
    assert first == second
    assert set(first) == {"Dockerfile", "package.json", "index.js", "README.md"}


def test_ignored_body_does_not_pull_in_interpolation() -> None:
    spell = _spell(action=http_action("https://api.example.com", method="GET", body="{{q}}"))
    assert "function interpolate" not in templates.server_code(spell)


# --- generated source parses --------------------------------------------------

NODE = shutil.which("node")


@pytest.mark.skipif(NODE is None, reason="node is not installed")
@pytest.mark.timeout(30)
@pytest.mark.parametrize(
    "candidate",
    [
        http_candidate(
            action=http_action(
                "https://api.example.com/{{owner}}/items?q={{q}}",
                method="POST",
                headers={"Authorization": "Bearer {{token}}", "Accept": "application/json"},
                body='{"q": "{{q}}", "quote": "\\"", "nl": "\\n"}',
            ),
            outputSchema={"type": "object", "properties": {"result": {"type": "number"}}},
        ),
        script_candidate(
            code="const t = `${input.a}`;\n// `backticks` and ${not} a template\nreturn { t };"
        ),
    ],
    ids=["http", "script"],
)
def test_server_source_is_valid_javascript(tmp_path, candidate) -> None:
    spell = validate_spell(candidate)
    for name, render in templates.TEMPLATES.items():
        (tmp_path / name).write_text(render(spell), encoding="utf-8")

    proc = subprocess.run(
        [NODE, "--check", str(tmp_path / "index.js")],
        capture_output=True,
        text=True,
        timeout=20,
    )
    assert proc.returncode == 0, proc.stderr
