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
"""Minimal observer registration for inspector objects."""

import logging

_LOGGER = logging.getLogger(__name__)


class Signal(object):
  """A list of callbacks invoked as `callback(sender, args)`.

  Callbacks are delivered in registration order. A callback which raises is
  logged and does not prevent delivery to the remaining callbacks.
  """

  def __init__(self, sender):
    self._sender = sender
    self._callbacks = []

  def connect(self, callback):
    """Registers a callback; connecting the same callback twice is a no-op."""
    if callback in self._callbacks:
      return False
    self._callbacks.append(callback)
    return True

  def disconnect(self, callback):
    try:
      self._callbacks.remove(callback)
    except ValueError:
      return False
    return True

  def disconnect_all(self):
    self._callbacks = []

  def emit(self, args=None):
    # Iterate over a copy, callbacks may disconnect themselves.
    for callback in self._callbacks[:]:
      try:
        callback(self._sender, args)
      except Exception:  # pylint: disable=broad-except
        _LOGGER.exception('Error in callback %r for %r', callback, self._sender)

  def __len__(self):
    return len(self._callbacks)
