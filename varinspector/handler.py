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
"""Per-session variable inspection handlers."""

import ast
import asyncio
import enum
import json
import logging

import pandas as pd

from varinspector import _signaling
from varinspector import config
from varinspector import errors
from varinspector import inspectable
from varinspector import languages

_LOGGER = logging.getLogger(__name__)

# Index name the kernel helpers use when a column already has the default one.
_PLACEHOLDER_INDEX_PREFIX = '__varinspector_index'

# Quoted string reprs, possibly wrapped in parentheses when IPython splits them.
_STRING_PREFIXES = ('"', "'", '(')


class HandlerState(enum.Enum):
  UNINITIALIZED = 'uninitialized'
  AWAITING_CONNECTOR = 'awaiting_connector'
  RUNNING_INIT = 'running_init'
  READY = 'ready'
  DISPOSED = 'disposed'


def _decode_reply(reply):
  """Returns the JSON value carried by a kernel reply.

  Kernels either print JSON directly or return it as a string, in which case
  the text is the string's repr, e.g. `'[{"varName": "x"}]'`.

  Args:
    reply: a varinspector.sessions.ExecuteReply.

  Returns:
    The decoded JSON value.

  Raises:
    ReplyParseError: if the reply does not carry JSON.
  """
  text = reply.text()
  if text is None:
    raise errors.ReplyParseError('Reply has no textual output')
  text = text.strip()
  if text[:1] in _STRING_PREFIXES:
    try:
      text = ast.literal_eval(text)
    except (ValueError, SyntaxError) as e:
      raise errors.ReplyParseError(
          'Reply is not a string literal: {}'.format(e)
      ) from e
    if not isinstance(text, str):
      raise errors.ReplyParseError('Reply is not a string literal')
  try:
    return json.loads(text)
  except ValueError as e:
    raise errors.ReplyParseError('Reply is not JSON: {}'.format(e)) from e


def parse_listing(reply):
  """Parses a variable listing reply into a tuple of VariableDescriptors."""
  entries = _decode_reply(reply)
  if not isinstance(entries, list):
    raise errors.ReplyParseError(
        'Expected a list of variables, got {}'.format(type(entries).__name__)
    )
  return tuple(inspectable.VariableDescriptor.from_json(e) for e in entries)


def parse_matrix(reply):
  """Parses a JSON table-schema reply into a pandas.DataFrame.

  Args:
    reply: a varinspector.sessions.ExecuteReply whose text is e.g.
      {"schema": {"fields": [{"name": "index"}, {"name": "a"}],
                  "primaryKey": ["index"]},
       "data": [{"index": 0, "a": 1}]}

  Returns:
    A DataFrame indexed by the table's primary key, if any.

  Raises:
    ReplyParseError: if the reply is not a table.
  """
  table = _decode_reply(reply)
  if not isinstance(table, dict) or not isinstance(table.get('data'), list):
    raise errors.ReplyParseError('Reply is not a JSON table')
  records = table['data']
  schema = table.get('schema') or {}
  columns = [
      field['name']
      for field in schema.get('fields', [])
      if isinstance(field, dict) and 'name' in field
  ]
  if not columns and records and isinstance(records[0], dict):
    columns = list(records[0])
  try:
    frame = pd.DataFrame.from_records(records, columns=columns or None)
  except (TypeError, ValueError) as e:
    raise errors.ReplyParseError('Malformed table data: {}'.format(e)) from e
  primary_key = schema.get('primaryKey') or []
  if isinstance(primary_key, str):
    primary_key = [primary_key]
  keys = [key for key in primary_key if key in frame.columns]
  if keys:
    frame = frame.set_index(keys)
    frame.index = frame.index.set_names([
        None if _is_placeholder_index_name(name) else name
        for name in frame.index.names
    ])
  return frame


def _is_placeholder_index_name(name):
  # pandas names unnamed indexes 'index' or 'level_<n>' when writing a table.
  if not isinstance(name, str):
    return False
  return (name == 'index' or name.startswith('level_') or
          name.startswith(_PLACEHOLDER_INDEX_PREFIX))


class VariableInspectionHandler(inspectable.Inspectable):
  """Turns inspection requests for one kernel into change notifications.

  The handler runs the language's init script once the connector is ready,
  and again whenever the kernel restarts. `perform_inspection` runs the query
  command and emits `inspected` only when the listing changed since the last
  emission.

  Attributes:
    max_rows: default row limit of perform_matrix_inspection.
  """
  max_rows = config.DEFAULT_MAX_ROWS

  def __init__(self,
               connector,
               init_script,
               query_command,
               matrix_query_command,
               id,  # pylint: disable=redefined-builtin
               max_rows=None):
    """Constructor.

    Must be called with a running event loop; initialization starts right
    away.

    Args:
      connector: the varinspector.kernelconnector.KernelConnector to use.
      init_script: source defining the kernel-side helpers.
      query_command: source evaluating to the JSON variable listing.
      matrix_query_command: template with `{name}` and `{max_rows}` fields.
      id: identifier of the inspected session.
      max_rows: overrides VariableInspectionHandler.max_rows.
    """
    self._state = HandlerState.UNINITIALIZED
    self._connector = connector
    self._init_script = init_script
    self._query_command = query_command
    self._matrix_query_command = matrix_query_command
    self.id = id
    if max_rows is not None:
      self.max_rows = max_rows
    self._initialized = asyncio.Event()
    self._init_generation = 0
    self._init_task = None
    self._cached = None
    self._inspection_lock = asyncio.Lock()
    self._next_inspection = None
    self.inspected = _signaling.Signal(self)
    self.disposed = _signaling.Signal(self)
    loop = asyncio.get_running_loop()
    self.ready = loop.create_future()
    connector.restarted.connect(self._on_kernel_restarted)
    connector.disposed.connect(self._on_connector_disposed)
    self._state = HandlerState.AWAITING_CONNECTOR
    self._init_task = loop.create_task(self._initialize())

  @property
  def state(self):
    return self._state

  @property
  def is_disposed(self):
    return self._state is HandlerState.DISPOSED

  @property
  def kernel_info(self):
    return inspectable.KernelInfo(
        kernel_name=self._connector.kernelname,
        language_name=self._connector.kerneltype,
    )

  async def _initialize(self):
    try:
      await self._connector.ready
    except errors.DisposedError:
      return
    except Exception:  # pylint: disable=broad-except
      _LOGGER.exception('Kernel handshake failed for %s', self.id)
      return
    if self.is_disposed:
      return
    await self._run_init_script(self._start_init())

  def _start_init(self):
    self._init_generation += 1
    self._state = HandlerState.RUNNING_INIT
    self._initialized.clear()
    return self._init_generation

  async def _run_init_script(self, generation):
    try:
      await self._connector.execute_checked(self._init_script)
    except errors.DisposedError:
      return
    except Exception as e:  # pylint: disable=broad-except
      # The handler stays usable; queries fail on their own if the helpers
      # are missing.
      _LOGGER.warning('Init script failed for %s: %s', self.id, e)
    if self.is_disposed or generation != self._init_generation:
      return
    self._state = HandlerState.READY
    self._initialized.set()
    if not self.ready.done():
      self.ready.set_result(None)
    _LOGGER.info('Variable inspection ready for %s', self.id)

  def _on_kernel_restarted(self, sender, args):
    del sender, args  # Unused.
    if self._state not in (HandlerState.RUNNING_INIT, HandlerState.READY):
      # The pending initialization runs the init script on the new kernel.
      return
    _LOGGER.info('Kernel for %s restarted, re-running init script', self.id)
    # Inspections wait for the new init script from now on.
    generation = self._start_init()
    self._init_task = asyncio.ensure_future(self._run_init_script(generation))

  def _on_connector_disposed(self, sender, args):
    del sender, args  # Unused.
    self.dispose()

  async def perform_inspection(self):
    """Queries the kernel and emits `inspected` if the variables changed.

    Failures are logged and dropped. Calls made before an inspection starts
    querying join it, so a burst of requests issued while another inspection
    runs results in a single extra query.
    """
    if self.is_disposed:
      return
    if self._next_inspection is None:
      self._next_inspection = asyncio.ensure_future(self._run_inspection())
    await asyncio.shield(self._next_inspection)

  async def _run_inspection(self):
    async with self._inspection_lock:
      await self._initialized.wait()
      # Requests from now on need a fresh query.
      self._next_inspection = None
      if self.is_disposed:
        return
      await self._inspect_once()

  async def _inspect_once(self):
    try:
      reply = await self._connector.execute_checked(self._query_command)
      payload = parse_listing(reply)
    except errors.DisposedError:
      return
    except (errors.Error, asyncio.TimeoutError) as e:
      _LOGGER.warning('Variable inspection of %s failed: %s', self.id, e)
      return
    if self.is_disposed:
      return
    serialized = json.dumps([v.to_json() for v in payload], sort_keys=True)
    if serialized == self._cached:
      return
    self._cached = serialized
    self.inspected.emit(
        inspectable.InspectionUpdate(info=self.kernel_info, payload=payload)
    )

  async def perform_matrix_inspection(self, var_name, max_rows=None):
    """Fetches the contents of one matrix-like variable.

    Args:
      var_name: name of the variable in the kernel.
      max_rows: row limit, defaults to self.max_rows.

    Returns:
      A pandas.DataFrame.

    Raises:
      MatrixInspectionError: if the variable does not exist, is not
        matrix-shaped, or the reply cannot be parsed.
      DisposedError: if the handler is disposed.
    """
    self._check_not_disposed()
    await self._initialized.wait()
    self._check_not_disposed()
    if max_rows is None:
      max_rows = self.max_rows
    code = languages.format_matrix_query(
        self._matrix_query_command, var_name, max_rows
    )
    try:
      reply = await self._connector.execute_checked(code)
      return parse_matrix(reply)
    except (errors.ExecutionError, errors.ReplyParseError,
            asyncio.TimeoutError) as e:
      raise errors.MatrixInspectionError(
          'Cannot inspect {!r} as a matrix: {}'.format(var_name, e)
      ) from e

  def _check_not_disposed(self):
    if self.is_disposed:
      raise errors.DisposedError('Handler {} is disposed'.format(self.id))

  def dispose(self):
    if self.is_disposed:
      return
    self._state = HandlerState.DISPOSED
    self._cached = None
    self._connector.restarted.disconnect(self._on_kernel_restarted)
    self._connector.disposed.disconnect(self._on_connector_disposed)
    if self._init_task is not None and not self._init_task.done():
      self._init_task.cancel()
    if not self.ready.done():
      self.ready.cancel()
    # Wake up waiters so they observe the disposal.
    self._initialized.set()
    self.disposed.emit()
    self.inspected.disconnect_all()
    self.disposed.disconnect_all()


class DummyHandler(inspectable.Inspectable):
  """Inspectable for kernels without a language bundle; it never executes."""

  def __init__(self, connector, id=None):  # pylint: disable=redefined-builtin
    self._connector = connector
    self._is_disposed = False
    self.id = connector.id if id is None else id
    self.inspected = _signaling.Signal(self)
    self.disposed = _signaling.Signal(self)
    self.ready = asyncio.get_running_loop().create_future()
    self.ready.set_result(None)
    connector.disposed.connect(self._on_connector_disposed)

  @property
  def is_disposed(self):
    return self._is_disposed

  def _on_connector_disposed(self, sender, args):
    del sender, args  # Unused.
    self.dispose()

  async def perform_inspection(self):
    return

  async def perform_matrix_inspection(self, var_name, max_rows=None):
    if self._is_disposed:
      raise errors.DisposedError('Handler {} is disposed'.format(self.id))
    raise errors.MatrixInspectionError(
        'Variable inspection is not available for {}; cannot inspect {!r}'
        .format(self.id, var_name)
    )

  def dispose(self):
    if self._is_disposed:
      return
    self._is_disposed = True
    self._connector.disposed.disconnect(self._on_connector_disposed)
    self.disposed.emit()
    self.inspected.disconnect_all()
    self.disposed.disconnect_all()
