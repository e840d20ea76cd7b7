# Copyright 2019 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Registry of per-language introspection bundles.

Example:

  model = await languages.get_script(connector.kerneltype)
  handler = VariableInspectionHandler(
      connector, model.init_script, model.query_command,
      model.matrix_query_command, id=session.path)
"""

import dataclasses
import json
import types

from varinspector import _inspector_scripts
from varinspector import errors

__all__ = [
    'LanguageModel',
    'format_matrix_query',
    'get_script',
    'supported_languages',
]


@dataclasses.dataclass(frozen=True)
class LanguageModel:
  """Introspection sources for one kernel language.

  Attributes:
    language_id: the kernel's language name, e.g. 'python'.
    init_script: source run once per kernel lifetime, and again on restart.
    query_command: expression evaluating to a JSON listing of the variables.
    matrix_query_command: template with `{name}` and `{max_rows}` fields
      evaluating to JSON table-schema text for one variable.
  """
  language_id: str
  init_script: str
  query_command: str
  matrix_query_command: str


def format_matrix_query(template, name, max_rows):
  """Fills a matrix query template for one variable."""
  # A JSON string literal is a valid string literal in every supported
  # language.
  return template.format(name=json.dumps(name), max_rows=int(max_rows))


def _python(language_id):
  return LanguageModel(
      language_id=language_id,
      init_script=_inspector_scripts.PYTHON_INIT_SCRIPT,
      query_command=_inspector_scripts.PYTHON_QUERY_COMMAND,
      matrix_query_command=_inspector_scripts.PYTHON_MATRIX_QUERY_COMMAND,
  )


_SCRIPTS = types.MappingProxyType({
    'python': _python('python'),
    'python3': _python('python3'),
    'python2': _python('python2'),
    'R': LanguageModel(
        language_id='R',
        init_script=_inspector_scripts.R_INIT_SCRIPT,
        query_command=_inspector_scripts.R_QUERY_COMMAND,
        matrix_query_command=_inspector_scripts.R_MATRIX_QUERY_COMMAND,
    ),
})


def supported_languages():
  return sorted(_SCRIPTS)


async def get_script(language_id):
  """Looks up the bundle for a kernel language.

  Args:
    language_id: exact, case-sensitive language name reported by the kernel.

  Returns:
    The LanguageModel registered for language_id.

  Raises:
    UnsupportedLanguageError: if no bundle is registered.
  """
  try:
    return _SCRIPTS[language_id]
  except (KeyError, TypeError):
    raise errors.UnsupportedLanguageError(language_id) from None
