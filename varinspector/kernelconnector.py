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
"""Execute-and-await-reply access to a single kernel session."""

import asyncio
import logging

from varinspector import _signaling
from varinspector import errors

_LOGGER = logging.getLogger(__name__)


class KernelConnector(object):
  """Connects the inspector to one kernel session.

  Requests are executed one at a time: a request waits for the reply to the
  previous one before it is sent to the kernel.

  Attributes:
    ready: future resolved once the session handshake reported the kernel's
      identity. It stays pending for a kernel that never finishes starting.
    restarted: signal emitted when the kernel restarted. Any state set up by
      earlier requests is gone.
    disposed: signal emitted once when the connector is disposed.
  """

  def __init__(self, session, timeout=None):
    """Constructor.

    Must be called with a running event loop.

    Args:
      session: the varinspector.sessions.Session to bind to.
      timeout: optional number of seconds to wait for each reply. None waits
        forever.
    """
    self._session = session
    self._timeout = timeout
    self._lock = asyncio.Lock()
    self._pending = set()
    self._identity = None
    self._is_disposed = False
    self.restarted = _signaling.Signal(self)
    self.disposed = _signaling.Signal(self)
    session.restarted.connect(self._on_session_restarted)
    session.disposed.connect(self._on_session_disposed)
    self.ready = asyncio.get_running_loop().create_task(self._handshake())

  @property
  def id(self):
    return self._session.path

  @property
  def is_disposed(self):
    return self._is_disposed

  @property
  def kerneltype(self):
    """The kernel's language name, e.g. 'python'."""
    return self._require_identity()['language']

  @property
  def kernelname(self):
    return self._require_identity()['kernel_name']

  def _require_identity(self):
    if self._identity is None:
      raise RuntimeError(
          'Kernel identity of {} is not known before `ready`'.format(self.id)
      )
    return self._identity

  async def _handshake(self):
    try:
      identity = await self._session.handshake()
    except asyncio.CancelledError:
      if self._is_disposed:
        raise errors.DisposedError(
            'Connector {} disposed before ready'.format(self.id)
        ) from None
      raise
    self._identity = {
        'language': identity.get('language') or '',
        'kernel_name': identity.get('kernel_name') or '',
    }
    _LOGGER.debug('Kernel for %s is ready: %s', self.id, self._identity)

  async def execute(self, code):
    """Executes code on the kernel.

    Args:
      code: source to execute.

    Returns:
      The varinspector.sessions.ExecuteReply, which may carry an error status.

    Raises:
      DisposedError: if the connector is disposed before or while the request
        runs.
    """
    self._check_not_disposed()
    task = asyncio.ensure_future(self._execute_in_turn(code))
    self._pending.add(task)
    try:
      return await task
    except asyncio.CancelledError:
      if self._is_disposed and task.cancelled():
        raise errors.DisposedError(
            'Connector {} disposed during execution'.format(self.id)
        ) from None
      raise
    finally:
      self._pending.discard(task)

  async def execute_checked(self, code):
    """Like execute, but raises ExecutionError on an error reply."""
    reply = await self.execute(code)
    if not reply.ok:
      raise errors.ExecutionError(
          reply.ename or reply.status, reply.evalue or '', reply.traceback
      )
    return reply

  async def _execute_in_turn(self, code):
    async with self._lock:
      self._check_not_disposed()
      if self._timeout is None:
        return await self._session.execute(code)
      return await asyncio.wait_for(
          self._session.execute(code), self._timeout
      )

  def _check_not_disposed(self):
    if self._is_disposed:
      raise errors.DisposedError('Connector {} is disposed'.format(self.id))

  def _on_session_restarted(self, sender, args):
    del sender, args  # Unused.
    self.restarted.emit()

  def _on_session_disposed(self, sender, args):
    del sender, args  # Unused.
    self.dispose()

  def dispose(self):
    if self._is_disposed:
      return
    self._is_disposed = True
    for task in list(self._pending):
      task.cancel()
    if not self.ready.done():
      self.ready.cancel()
    self._session.restarted.disconnect(self._on_session_restarted)
    self._session.disposed.disconnect(self._on_session_disposed)
    self.disposed.emit()
    self.restarted.disconnect_all()
    self.disposed.disconnect_all()
