"""Rendering of user code into runnable artifacts.

An artifact is a handler module wrapping the user's code plus an invocation
wrapper. The wrapper reads the JSON payload from its first command-line
argument, calls the handler and writes exactly one line of JSON to stdout.
On any error it writes a diagnostic to stderr and exits non-zero.
"""

import json
import textwrap
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Union

from ...config.languages import LanguageConfig, get_language
from ...models.errors import UnsupportedLanguageError
from ...models.function import Language

JS_HANDLER_TEMPLATE = """\
module.exports = async (event) => {{
{code}
}};
"""

JS_WRAPPER_TEMPLATE = """\
const handler = require('./{handler}');

const raw = process.argv[2];

const fail = (error) => {{
  const message = error && error.message ? error.message : String(error);
  process.stderr.write(`Error: ${{message}}\\n`);
  process.exit(1);
}};

let event;
try {{
  event = raw === undefined ? {{}} : JSON.parse(raw);
}} catch (error) {{
  fail(error);
}}

Promise.resolve()
  .then(() => handler(event))
  .then((result) => {{
    const line = JSON.stringify(result);
    process.stdout.write((line === undefined ? 'null' : line) + '\\n');
  }})
  .catch(fail);
"""

PY_HANDLER_TEMPLATE = """\
def handler(event):
{code}
"""

PY_WRAPPER_TEMPLATE = """\
import json
import sys


def main():
    raw = sys.argv[1] if len(sys.argv) > 1 else "{{}}"
    try:
        from {module} import handler

        event = json.loads(raw)
        line = json.dumps(handler(event))
    except Exception as exc:
        sys.stderr.write("Error: %s\\n" % exc)
        sys.stderr.flush()
        sys.exit(1)
    sys.stdout.write(line + "\\n")
    sys.stdout.flush()


if __name__ == "__main__":
    main()
"""

PYTHON_INDENT = "    "


@dataclass(frozen=True)
class Artifact:
    """Rendered sources for one function, ready to be built or executed."""

    language: str
    files: Dict[str, str] = field(default_factory=dict)
    entrypoint: str = ""

    def invocation_command(
        self, interpreter: str, root: str, payload: Any
    ) -> List[str]:
        """Command that runs the wrapper under ``root`` against ``payload``."""
        return [interpreter, f"{root.rstrip('/')}/{self.entrypoint}", json.dumps(payload)]


def _render_javascript(config: LanguageConfig, code: str) -> Artifact:
    handler = JS_HANDLER_TEMPLATE.format(code=code)
    wrapper = JS_WRAPPER_TEMPLATE.format(handler=config.handler_filename)
    return Artifact(
        language=config.code,
        files={config.handler_filename: handler, config.wrapper_filename: wrapper},
        entrypoint=config.wrapper_filename,
    )


def indent_python_body(code: str) -> str:
    """Re-indent user code as the body of ``handler``.

    Empty or comment-only code gets an explicit ``return None`` so the
    rendered module stays syntactically valid.
    """
    body = textwrap.dedent(code.expandtabs(4)).strip("\n")
    has_statement = any(
        line.strip() and not line.strip().startswith("#")
        for line in body.splitlines()
    )
    if not has_statement:
        body = f"{body}\nreturn None" if body.strip() else "return None"
    return textwrap.indent(body, PYTHON_INDENT)


def _render_python(config: LanguageConfig, code: str) -> Artifact:
    handler = PY_HANDLER_TEMPLATE.format(code=indent_python_body(code))
    module = config.handler_filename.rsplit(".", 1)[0]
    wrapper = PY_WRAPPER_TEMPLATE.format(module=module)
    return Artifact(
        language=config.code,
        files={config.handler_filename: handler, config.wrapper_filename: wrapper},
        entrypoint=config.wrapper_filename,
    )


_RENDERERS: Dict[str, Callable[[LanguageConfig, str], Artifact]] = {
    "javascript": _render_javascript,
    "python": _render_python,
}


class ArtifactRenderer:
    """Turns (language, code) into an Artifact. Pure, performs no I/O."""

    def render(self, language: Union[Language, str], code: str) -> Artifact:
        """Render user code for a language.

        Args:
            language: Language of the function
            code: Handler body as written by the user

        Returns:
            Artifact with handler, wrapper and entrypoint

        Raises:
            UnsupportedLanguageError: If no renderer exists for the language
        """
        code_name = language.value if isinstance(language, Language) else str(language)
        try:
            config = get_language(code_name)
            render = _RENDERERS[config.code]
        except KeyError:
            raise UnsupportedLanguageError(code_name)
        return render(config, code or "")
