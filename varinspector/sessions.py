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
"""Kernel sessions the inspector can execute code on."""

import abc
import dataclasses
import logging
from typing import Any, Dict, List, Optional

from varinspector import _signaling
from varinspector import errors

_LOGGER = logging.getLogger(__name__)

_RICH_OUTPUT_TYPES = ('execute_result', 'display_data')


@dataclasses.dataclass
class ExecuteReply:
  """Result of one execute request.

  Attributes:
    status: 'ok' or 'error' (or 'aborted', which is treated as an error).
    outputs: outputs published for the request, in nbformat shape, e.g.
      {'output_type': 'execute_result', 'data': {'text/plain': ...}}.
    ename: exception name for error replies.
    evalue: exception value for error replies.
    traceback: traceback lines for error replies.
  """
  status: str
  outputs: List[Dict[str, Any]] = dataclasses.field(default_factory=list)
  ename: Optional[str] = None
  evalue: Optional[str] = None
  traceback: List[str] = dataclasses.field(default_factory=list)

  @property
  def ok(self):
    return self.status == 'ok'

  def text(self):
    """Returns the textual result of the request, or None.

    The `text/plain` data of the last rich output wins; without rich outputs
    the concatenated stdout stream is used.
    """
    for output in reversed(self.outputs):
      if output.get('output_type') in _RICH_OUTPUT_TYPES:
        text = output.get('data', {}).get('text/plain')
        if text is not None:
          return text if isinstance(text, str) else ''.join(text)
    stdout = [
        output.get('text', '')
        for output in self.outputs
        if output.get('output_type') == 'stream'
        and output.get('name') == 'stdout'
    ]
    if stdout:
      return ''.join(stdout)
    return None


class Session(abc.ABC):
  """A live kernel the inspector executes code on.

  Attributes:
    path: identifier of the session, e.g. the notebook path or kernel id.
    restarted: signal emitted when the kernel restarted.
    disposed: signal emitted once when the session is torn down.
  """

  def __init__(self, path):
    self.path = path
    self.restarted = _signaling.Signal(self)
    self.disposed = _signaling.Signal(self)
    self._is_disposed = False

  @property
  def is_disposed(self):
    return self._is_disposed

  @abc.abstractmethod
  async def handshake(self):
    """Waits for the kernel to be ready and reports its identity.

    Returns:
      A dict with 'language' and 'kernel_name' keys.
    """

  @abc.abstractmethod
  async def execute(self, code):
    """Executes code on the kernel and returns an ExecuteReply."""

  def notify_restarted(self):
    if self._is_disposed:
      return
    _LOGGER.info('Kernel for session %s restarted', self.path)
    self.restarted.emit()

  def dispose(self):
    if self._is_disposed:
      return
    self._is_disposed = True
    self.disposed.emit()
    self.restarted.disconnect_all()
    self.disposed.disconnect_all()


class KernelClientSession(Session):
  """Session over a `jupyter_client` AsyncKernelClient.

  The client's channels must already be started. When a kernel manager is
  given, its auto-restart and death notifications are forwarded to the
  `restarted` and `disposed` signals.
  """

  def __init__(self, path, client, kernel_name=None, kernel_manager=None):
    super().__init__(path)
    self._client = client
    self._kernel_name = kernel_name
    self._kernel_manager = kernel_manager
    if kernel_manager is not None:
      kernel_manager.add_restart_callback(self.notify_restarted, 'restart')
      kernel_manager.add_restart_callback(self.dispose, 'dead')

  async def handshake(self):
    await self._client.wait_for_ready(timeout=None)
    reply = await self._client.kernel_info(reply=True)
    content = reply.get('content', {})
    language = content.get('language_info', {}).get('name', '')
    kernel_name = self._kernel_name or content.get('implementation', '')
    return {'language': language, 'kernel_name': kernel_name}

  async def execute(self, code):
    if self.is_disposed:
      raise errors.DisposedError('Session {} is disposed'.format(self.path))
    outputs = []

    def output_hook(msg):
      msg_type = msg['header']['msg_type']
      content = msg['content']
      if msg_type in _RICH_OUTPUT_TYPES:
        outputs.append({
            'output_type': msg_type,
            'data': content.get('data', {}),
        })
      elif msg_type == 'stream':
        outputs.append({
            'output_type': 'stream',
            'name': content.get('name'),
            'text': content.get('text', ''),
        })

    reply = await self._client.execute_interactive(
        code,
        silent=False,
        store_history=False,
        allow_stdin=False,
        output_hook=output_hook,
    )
    content = reply.get('content', {})
    return ExecuteReply(
        status=content.get('status', 'error'),
        outputs=outputs,
        ename=content.get('ename'),
        evalue=content.get('evalue'),
        traceback=content.get('traceback', []),
    )

  def dispose(self):
    if self.is_disposed:
      return
    if self._kernel_manager is not None:
      self._kernel_manager.remove_restart_callback(
          self.notify_restarted, 'restart'
      )
      self._kernel_manager.remove_restart_callback(self.dispose, 'dead')
    self._client.stop_channels()
    super().dispose()
