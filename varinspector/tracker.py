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
"""Wires sessions opened by a host application to inspection handlers.

Example:

  manager = VariableInspectorManager()
  tracker = SessionTracker(manager)
  tracker.add_session(session)       # when a notebook or console opens
  await tracker.focus(session.path)  # when it receives focus
"""

import asyncio
import functools
import logging

from varinspector import errors
from varinspector import handler as handler_lib
from varinspector import kernelconnector
from varinspector import languages

_LOGGER = logging.getLogger(__name__)


class SessionTracker(object):
  """Creates one handler per session and follows focus changes.

  A session's handler is created at most once: concurrent `add_session` calls
  for the same session share one pending future.
  """

  def __init__(self, manager, execute_timeout=None, max_rows=None):
    """Constructor.

    Args:
      manager: the VariableInspectorManager to register handlers with.
      execute_timeout: optional per-request timeout of the connectors.
      max_rows: optional default row limit for matrix inspections.
    """
    self._manager = manager
    self._execute_timeout = execute_timeout
    self._max_rows = max_rows
    self._pending = {}
    self._sessions = {}
    self._focus_target = None

  @property
  def manager(self):
    return self._manager

  def has_session(self, session_id):
    return session_id in self._pending

  def session_ids(self):
    return list(self._sessions)

  def add_session(self, session):
    """Starts tracking a session.

    Args:
      session: a varinspector.sessions.Session.

    Returns:
      A future resolving to the session's handler once it is ready.
    """
    session_id = session.path
    future = self._pending.get(session_id)
    if future is not None:
      return future
    if self._manager.has_handler(session_id):
      future = asyncio.get_running_loop().create_future()
      future.set_result(self._manager.get_handler(session_id))
    else:
      future = asyncio.ensure_future(self._create_handler(session))
    self._pending[session_id] = future
    self._sessions[session_id] = session
    future.add_done_callback(functools.partial(self._on_settled, session_id))
    session.disposed.connect(self._on_session_disposed)
    return future

  async def _create_handler(self, session):
    connector = kernelconnector.KernelConnector(
        session, timeout=self._execute_timeout
    )
    try:
      await connector.ready
    except asyncio.CancelledError:
      if connector.is_disposed:
        raise errors.DisposedError(
            'Session {} closed before its kernel was ready'.format(session.path)
        ) from None
      raise
    try:
      model = await languages.get_script(connector.kerneltype)
    except errors.UnsupportedLanguageError as e:
      _LOGGER.info('%s; inspection disabled for %s', e, session.path)
      handler = handler_lib.DummyHandler(connector, id=session.path)
    else:
      handler = handler_lib.VariableInspectionHandler(
          connector,
          model.init_script,
          model.query_command,
          model.matrix_query_command,
          id=session.path,
          max_rows=self._max_rows,
      )
    self._manager.add_handler(handler)
    handler.disposed.connect(self._on_handler_disposed)
    try:
      await handler.ready
    except asyncio.CancelledError:
      if handler.is_disposed:
        raise errors.DisposedError(
            'Handler {} disposed before it was ready'.format(handler.id)
        ) from None
      raise
    return handler

  def _on_settled(self, session_id, future):
    if future.cancelled():
      return
    exc = future.exception()
    if exc is None:
      return
    _LOGGER.warning('Could not set up inspection for %s: %s', session_id, exc)
    if self._pending.get(session_id) is future:
      self.remove_session(session_id)

  async def focus(self, session_id):
    """Makes the session's handler the active source and inspects it.

    Args:
      session_id: path of a tracked session. Unknown ids are ignored.

    Returns:
      The activated handler, or None if nothing was activated, e.g. because
      focus moved on while the handler was being created.

    Raises:
      Whatever made the handler creation fail, e.g. DisposedError when the
      session closed before its kernel was ready.
    """
    self._focus_target = session_id
    future = self._pending.get(session_id)
    if future is None:
      return None
    # Callers may time out; that must not abort the shared handler creation.
    source = await asyncio.shield(future)
    if self._focus_target != session_id or source.is_disposed:
      return None
    self._manager.source = source
    await source.perform_inspection()
    return source

  def remove_session(self, session_id):
    """Disposes a tracked session, its connector and its handler."""
    session = self._sessions.get(session_id)
    if session is not None:
      session.dispose()
    self._forget(session_id)

  def dispose(self):
    for session_id in list(self._sessions):
      self.remove_session(session_id)

  def _forget(self, session_id):
    self._pending.pop(session_id, None)
    session = self._sessions.pop(session_id, None)
    if session is not None:
      session.disposed.disconnect(self._on_session_disposed)

  def _on_session_disposed(self, session, args):
    del args  # Unused.
    if self._sessions.get(session.path) is session:
      self._forget(session.path)

  def _on_handler_disposed(self, handler, args):
    del args  # Unused.
    future = self._pending.get(handler.id)
    if future is not None and future.done() and not future.cancelled():
      if future.exception() is None and future.result() is handler:
        self._forget(handler.id)
