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
"""Headless display panel following the manager's active source."""

import asyncio
import weakref

COLUMNS = ('Name', 'Type', 'Size', 'Shape', 'Content')


class InspectorPanel(object):
  """Keeps the latest InspectionUpdate of the active source.

  The panel subscribes to whichever handler the manager makes active, asks it
  for an inspection when it is bound, and forgets it when it is disposed.
  """

  def __init__(self, manager):
    self._manager = manager
    self._source = None
    # Handlers only emit on change, so the last update of every source seen
    # is kept for when it becomes active again.
    self._updates = weakref.WeakKeyDictionary()
    self._inspection = None
    manager.source_changed.connect(self._on_source_changed)
    self.source = manager.source

  @property
  def source(self):
    return self._source

  @source.setter
  def source(self, source):
    if source is self._source:
      return
    if self._source is not None:
      self._source.inspected.disconnect(self._on_inspected)
      self._source.disposed.disconnect(self._on_source_disposed)
    self._source = source
    if source is not None:
      source.inspected.connect(self._on_inspected)
      source.disposed.connect(self._on_source_disposed)
      self._inspection = asyncio.ensure_future(source.perform_inspection())

  @property
  def update(self):
    """The latest InspectionUpdate of the source, or None."""
    if self._source is None:
      return None
    return self._updates.get(self._source)

  def rows(self):
    """Returns the (name, type, size, shape, content) rows to display."""
    update = self.update
    if update is None:
      return []
    return [(v.name, v.type, v.size, v.shape, v.content)
            for v in update.payload]

  def kernel_label(self):
    update = self.update
    if update is None:
      return 'Loading...'
    info = update.info
    if info.context:
      return info.context
    return "Inspecting {}-kernel '{}'".format(
        info.language_name, info.kernel_name
    )

  async def open_matrix(self, var_name, max_rows=None):
    """Returns the DataFrame for a matrix row of the table."""
    if self._source is None:
      raise ValueError('No source to inspect {!r} with'.format(var_name))
    return await self._source.perform_matrix_inspection(
        var_name, max_rows=max_rows
    )

  def _on_source_changed(self, sender, source):
    del sender  # Unused.
    self.source = source

  def _on_inspected(self, sender, update):
    self._updates[sender] = update

  def _on_source_disposed(self, sender, args):
    del args  # Unused.
    self._updates.pop(sender, None)
    if sender is self._source:
      self.source = None

  def dispose(self):
    self._manager.source_changed.disconnect(self._on_source_changed)
    self.source = None
