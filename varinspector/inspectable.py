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
"""Values exchanged between inspection handlers and their observers."""

import abc
import dataclasses
from typing import Optional, Tuple

from varinspector import errors

# Keys used by the kernel-side listings.
_WIRE_KEYS = (
    ('name', 'varName'),
    ('type', 'varType'),
    ('size', 'varSize'),
    ('shape', 'varShape'),
    ('content', 'varContent'),
)


@dataclasses.dataclass(frozen=True)
class VariableDescriptor:
  """One variable of a kernel's namespace."""
  name: str
  type: str = ''
  size: str = ''
  shape: str = ''
  content: str = ''
  is_matrix: bool = False

  @classmethod
  def from_json(cls, obj):
    """Builds a descriptor from one entry of a kernel listing.

    Args:
      obj: dict with the kernel listing keys, e.g. {'varName': 'x', ...}.

    Returns:
      A VariableDescriptor.

    Raises:
      ReplyParseError: if obj is not a listing entry.
    """
    if not isinstance(obj, dict) or 'varName' not in obj:
      raise errors.ReplyParseError(
          'Unexpected variable entry: {!r}'.format(obj)
      )
    values = {}
    for field, key in _WIRE_KEYS:
      value = obj.get(key)
      values[field] = '' if value is None else str(value)
    return cls(is_matrix=bool(obj.get('isMatrix', False)), **values)

  def to_json(self):
    result = {key: getattr(self, field) for field, key in _WIRE_KEYS}
    result['isMatrix'] = self.is_matrix
    return result


@dataclasses.dataclass(frozen=True)
class KernelInfo:
  """Describes the kernel behind an inspection.

  Attributes:
    kernel_name: name of the kernel, e.g. 'python3'.
    language_name: the kernel's language, e.g. 'python'.
    context: free-form text shown instead of the kernel description.
  """
  kernel_name: Optional[str] = None
  language_name: Optional[str] = None
  context: Optional[str] = None

  def to_json(self):
    return {
        'kernelName': self.kernel_name,
        'languageName': self.language_name,
        'context': self.context,
    }


@dataclasses.dataclass(frozen=True)
class InspectionUpdate:
  """A new variable listing; payload keeps the kernel's own ordering."""
  info: KernelInfo
  payload: Tuple[VariableDescriptor, ...] = ()

  def to_json(self):
    return {
        'info': self.info.to_json(),
        'payload': [variable.to_json() for variable in self.payload],
    }


class Inspectable(abc.ABC):
  """Interface shared by every inspection handler.

  Attributes:
    id: identifier of the inspected session.
    ready: future resolved once the handler can serve inspections.
    inspected: signal emitted with an InspectionUpdate when variables change.
    disposed: signal emitted once when the handler is disposed.
  """

  id = None
  ready = None
  inspected = None
  disposed = None

  @property
  @abc.abstractmethod
  def is_disposed(self):
    """Whether dispose() was called."""

  @abc.abstractmethod
  async def perform_inspection(self):
    """Requests a fresh listing; observers hear about it via `inspected`."""

  @abc.abstractmethod
  async def perform_matrix_inspection(self, var_name, max_rows=None):
    """Returns a pandas.DataFrame with the contents of one variable."""

  @abc.abstractmethod
  def dispose(self):
    """Releases the handler; idempotent."""
