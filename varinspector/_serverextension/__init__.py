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
"""Jupyter server extension exposing variable inspection over HTTP."""

from varinspector import config as config_lib
from varinspector import manager as manager_lib
from varinspector import panel as panel_lib
from varinspector import tracker as tracker_lib

_SETTINGS_KEY = 'varinspector'


def _jupyter_server_extension_points():
  return [{
      'module': 'varinspector._serverextension',
  }]


def load_jupyter_server_extension(server_app):
  """Called by Jupyter when starting the server."""
  # We only want to import these modules when setting up a server extension, and
  # want to avoid raising an exception when the `jupyter_server` package isn't
  # available.
  # pylint: disable=g-import-not-at-top
  from jupyter_server import utils
  from varinspector._serverextension import _handlers
  # pylint: enable=g-import-not-at-top

  app = server_app.web_app
  config = config_lib.Config.from_environ(
      overrides=server_app.config.get('VarInspector', {})
  )
  manager = manager_lib.VariableInspectorManager()
  tracker = tracker_lib.SessionTracker(
      manager,
      execute_timeout=config.execute_timeout,
      max_rows=config.max_rows,
  )
  panel = panel_lib.InspectorPanel(manager)
  app.settings[_SETTINGS_KEY] = {
      'tracker': tracker,
      'panel': panel,
  }

  handler_args = {
      'tracker': tracker,
      'panel': panel,
      'kernel_manager': app.settings['kernel_manager'],
      'config': config,
  }
  url_maker = lambda path: utils.url_path_join(app.settings['base_url'], path)
  app.add_handlers('.*$', [
      (url_maker('/api/varinspector/kernels/([^/]+)/focus'),
       _handlers.FocusHandler, handler_args),
      (url_maker('/api/varinspector/variables'), _handlers.VariablesHandler,
       handler_args),
      (url_maker('/api/varinspector/matrix'), _handlers.MatrixHandler,
       handler_args),
  ])
  server_app.log.info('varinspector serverextension initialized.')


_load_jupyter_server_extension = load_jupyter_server_extension
