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
"""Common error types used across the variable inspector."""


class Error(Exception):
  """Base class for all variable inspector errors."""


class UnsupportedLanguageError(Error):
  """No language bundle is registered for a kernel language."""

  def __init__(self, language):
    super().__init__(
        'No variable inspection script registered for language {!r}'.format(
            language
        )
    )
    self.language = language


class ExecutionError(Error):
  """Code submitted to a kernel raised an error."""

  def __init__(self, ename, evalue, traceback=None):
    super().__init__('{}: {}'.format(ename, evalue))
    self.ename = ename
    self.evalue = evalue
    self.traceback = list(traceback or [])


class ReplyParseError(Error):
  """A kernel reply did not have the expected serialized shape."""


class MatrixInspectionError(Error):
  """A variable could not be inspected as a matrix."""


class DisposedError(Error):
  """An operation was attempted on a disposed object."""
