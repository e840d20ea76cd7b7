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
"""Tracks inspection handlers and the one bound to the focused session."""

import logging
import types

from varinspector import _signaling
from varinspector import errors

_LOGGER = logging.getLogger(__name__)


class VariableInspectorManager(object):
  """Registry of live handlers keyed by session id.

  `source` is the active handler, the one whose updates are displayed. It is
  reset to None when that handler is disposed. Mutations are expected from
  the event loop thread only.

  Attributes:
    source_changed: signal emitted with the new source (or None).
  """

  def __init__(self):
    self._handlers = {}
    self._source = None
    self.source_changed = _signaling.Signal(self)

  @property
  def handlers(self):
    return types.MappingProxyType(self._handlers)

  def has_handler(self, session_id):
    return session_id in self._handlers

  def get_handler(self, session_id):
    """Returns the handler for session_id; raises KeyError if there is none."""
    return self._handlers[session_id]

  def add_handler(self, handler):
    """Registers handler under its id, replacing any previous handler."""
    if handler.is_disposed:
      raise errors.DisposedError(
          'Cannot register disposed handler {}'.format(handler.id)
      )
    previous = self._handlers.get(handler.id)
    if previous is handler:
      return
    if previous is not None:
      _LOGGER.debug('Replacing handler for %s', handler.id)
      if previous is not self._source:
        previous.disposed.disconnect(self._on_handler_disposed)
    self._handlers[handler.id] = handler
    handler.disposed.connect(self._on_handler_disposed)

  @property
  def source(self):
    return self._source

  @source.setter
  def source(self, source):
    if source is self._source:
      return
    if source is not None and source.is_disposed:
      raise errors.DisposedError(
          'Cannot activate disposed handler {}'.format(source.id)
      )
    old = self._source
    if old is not None and self._handlers.get(old.id) is not old:
      old.disposed.disconnect(self._on_handler_disposed)
    self._source = source
    if source is not None:
      # Untracked sources still need to clear themselves on disposal.
      source.disposed.connect(self._on_handler_disposed)
    self.source_changed.emit(source)

  def _on_handler_disposed(self, handler, args):
    del args  # Unused.
    if self._handlers.get(handler.id) is handler:
      del self._handlers[handler.id]
    if self._source is handler:
      self.source = None
