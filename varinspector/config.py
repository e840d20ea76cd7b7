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
"""Runtime configuration for the variable inspector."""

import dataclasses
import logging
import os
from typing import Any, Mapping, Optional

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 10000

_ENV_PREFIX = 'VARINSPECTOR_'


@dataclasses.dataclass
class Config:
  """Inspector settings.

  Attributes:
    max_rows: default row limit for matrix inspections.
    execute_timeout: seconds to wait for a single kernel reply, or None to wait
      forever.
    ready_timeout: seconds the server extension waits for a kernel handshake
      before giving up on a focus request, or None to wait forever.
  """
  max_rows: int = DEFAULT_MAX_ROWS
  execute_timeout: Optional[float] = None
  ready_timeout: Optional[float] = None

  @classmethod
  def from_environ(cls, environ=None, overrides=None):
    """Builds a config from defaults, `overrides` and then the environment.

    Args:
      environ: mapping to read variables from, defaults to os.environ.
      overrides: optional mapping of field name to value, e.g. the
        `VarInspector` section of a Jupyter server config.

    Returns:
      A Config.
    """
    environ = os.environ if environ is None else environ
    config = cls()
    for key, value in (overrides or {}).items():
      if value is not None:
        _assign(config, key, value)
    for field in dataclasses.fields(cls):
      raw = environ.get(_ENV_PREFIX + field.name.upper())
      if raw:
        _assign(config, field.name, raw)
    return config


def _assign(config: Config, name: str, value: Any):
  converters: Mapping[str, Any] = {
      'max_rows': int,
      'execute_timeout': float,
      'ready_timeout': float,
  }
  converter = converters.get(name)
  if converter is None:
    _LOGGER.warning('Ignoring unknown inspector setting %r', name)
    return
  try:
    converted = converter(value)
  except (TypeError, ValueError):
    _LOGGER.warning('Ignoring invalid value %r for setting %r', value, name)
    return
  if converted <= 0:
    _LOGGER.warning('Ignoring non-positive value %r for setting %r', value, name)
    return
  setattr(config, name, converted)
