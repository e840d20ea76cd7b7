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
"""Variable inspection for running Jupyter kernels."""

from varinspector import _serverextension
from varinspector import config
from varinspector import errors
from varinspector import handler
from varinspector import inspectable
from varinspector import kernelconnector
from varinspector import languages
from varinspector import manager
from varinspector import panel
from varinspector import sessions
from varinspector import tracker

__all__ = [
    'config',
    'errors',
    'handler',
    'inspectable',
    'kernelconnector',
    'languages',
    'manager',
    'panel',
    'sessions',
    'tracker',
]

__version__ = '0.1.0'


def _jupyter_server_extension_points():
  return _serverextension._jupyter_server_extension_points()  # pylint: disable=protected-access


def load_jupyter_server_extension(server_app):
  """Called by Jupyter server when the extension is enabled."""
  _serverextension.load_jupyter_server_extension(server_app)
