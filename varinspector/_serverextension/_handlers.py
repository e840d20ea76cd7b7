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
"""Variable inspector API handlers."""

import asyncio
import http
import json

from jupyter_server.base import handlers
import tornado

from varinspector import errors
from varinspector import sessions

_XSSI_PREFIX = ")]}'\n"


def _session_for_kernel(kernel_manager, kernel_id):
  """Opens a session on a kernel of the server.

  Args:
    kernel_manager: the server's MultiKernelManager.
    kernel_id: id of a running kernel.

  Returns:
    A KernelClientSession with started channels.

  Raises:
    KeyError: if there is no such kernel.
  """
  km = kernel_manager.get_kernel(kernel_id)
  client = km.client()
  client.start_channels()
  return sessions.KernelClientSession(
      kernel_id,
      client,
      kernel_name=getattr(km, 'kernel_name', None),
      kernel_manager=km,
  )


class _InspectorHandler(handlers.APIHandler):
  """Base class of the inspector handlers."""

  def initialize(self, tracker, panel, kernel_manager, config):
    self._tracker = tracker
    self._panel = panel
    self._kernel_manager = kernel_manager
    self._config = config

  def _finish_json(self, obj, status=http.HTTPStatus.OK):
    self.set_status(status)
    self.set_header('Content-Type', 'application/json')
    self.finish(_XSSI_PREFIX + json.dumps(obj))

  def _finish_error(self, status, message):
    self._finish_json({'error': message}, status=status)

  def _forget_closed_kernels(self):
    live = set(self._kernel_manager.list_kernel_ids())
    for session_id in self._tracker.session_ids():
      if session_id not in live:
        self._tracker.remove_session(session_id)

  def _state(self):
    panel = self._panel
    update = panel.update
    state = {
        'source': panel.source.id if panel.source is not None else None,
        'label': panel.kernel_label(),
        'info': None,
        'payload': [],
    }
    if update is not None:
      state.update(update.to_json())
    return state


class FocusHandler(_InspectorHandler):
  """Makes a kernel the inspected one."""

  @tornado.web.authenticated
  async def post(self, kernel_id):
    self._forget_closed_kernels()
    if not self._tracker.has_session(kernel_id):
      try:
        session = _session_for_kernel(self._kernel_manager, kernel_id)
      except KeyError:
        self._finish_error(
            http.HTTPStatus.NOT_FOUND, 'No such kernel: {}'.format(kernel_id)
        )
        return
      self._tracker.add_session(session)
    try:
      await asyncio.wait_for(
          self._tracker.focus(kernel_id), self._config.ready_timeout
      )
    except asyncio.TimeoutError:
      self._finish_error(
          http.HTTPStatus.GATEWAY_TIMEOUT,
          'Kernel {} did not become ready'.format(kernel_id),
      )
      return
    except errors.Error as e:
      self._finish_error(http.HTTPStatus.CONFLICT, str(e))
      return
    self._finish_json(self._state())


class VariablesHandler(_InspectorHandler):
  """Lists the variables of the inspected kernel."""

  @tornado.web.authenticated
  async def get(self, *unused_args, **unused_kwargs):
    self._forget_closed_kernels()
    source = self._panel.source
    if source is not None:
      await source.perform_inspection()
    self._finish_json(self._state())


class MatrixHandler(_InspectorHandler):
  """Returns the contents of one matrix-like variable."""

  @tornado.web.authenticated
  async def get(self, *unused_args, **unused_kwargs):
    name = self.get_argument('name', None)
    if not name:
      self._finish_error(http.HTTPStatus.BAD_REQUEST, "missing 'name'")
      return
    max_rows = self.get_argument('max_rows', None)
    if max_rows is not None:
      try:
        max_rows = int(max_rows)
      except ValueError:
        self._finish_error(
            http.HTTPStatus.BAD_REQUEST, "'max_rows' must be an integer"
        )
        return
    if self._panel.source is None:
      self._finish_error(http.HTTPStatus.NOT_FOUND, 'No kernel is inspected')
      return
    try:
      frame = await self._panel.open_matrix(name, max_rows=max_rows)
    except errors.MatrixInspectionError as e:
      self._finish_error(http.HTTPStatus.UNPROCESSABLE_ENTITY, str(e))
      return
    except errors.DisposedError as e:
      self._finish_error(http.HTTPStatus.CONFLICT, str(e))
      return
    self._finish_json({
        'name': name,
        'matrix': json.loads(frame.to_json(orient='split', default_handler=str)),
    })
