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
"""Tests for varinspector.tracker."""

import asyncio
import unittest

import fake_session
from varinspector import _inspector_scripts
from varinspector import errors
from varinspector import handler
from varinspector import manager
from varinspector import tracker


async def _spin(times=10):
  for _ in range(times):
    await asyncio.sleep(0)


def _python_session(path='a.ipynb', **kwargs):
  return fake_session.FakeSession(
      path=path, query_command=_inspector_scripts.PYTHON_QUERY_COMMAND,
      **kwargs)


class SessionTrackerTest(unittest.IsolatedAsyncioTestCase):

  async def asyncSetUp(self):
    await super().asyncSetUp()
    self.manager = manager.VariableInspectorManager()
    self.tracker = tracker.SessionTracker(self.manager)

  async def testAddSessionOnce(self):
    session = _python_session()
    first = self.tracker.add_session(session)
    second = self.tracker.add_session(session)
    self.assertIs(first, second)
    inspection_handler = await first
    self.assertIsInstance(
        inspection_handler, handler.VariableInspectionHandler
    )
    self.assertIs(inspection_handler, self.manager.get_handler('a.ipynb'))
    self.assertEqual(
        [_inspector_scripts.PYTHON_INIT_SCRIPT], session.executed
    )
    self.assertTrue(self.tracker.has_session('a.ipynb'))
    self.assertEqual(['a.ipynb'], self.tracker.session_ids())

  async def testUnsupportedLanguageGetsDummyHandler(self):
    session = fake_session.FakeSession(language='cobol')
    with self.assertLogs('varinspector.tracker', level='INFO'):
      dummy = await self.tracker.add_session(session)
    self.assertIsInstance(dummy, handler.DummyHandler)
    self.assertIs(dummy, self.manager.get_handler('notebook.ipynb'))
    updates = []
    dummy.inspected.connect(lambda sender, update: updates.append(update))
    await dummy.perform_inspection()
    self.assertEqual([], updates)
    with self.assertRaises(errors.MatrixInspectionError):
      await dummy.perform_matrix_inspection('df')
    self.assertEqual([], session.executed)

  async def testFocus(self):
    session = _python_session()
    session.variables = [fake_session.variable('x')]
    self.tracker.add_session(session)
    source = await self.tracker.focus('a.ipynb')
    self.assertIs(source, self.manager.source)
    self.assertEqual(_inspector_scripts.PYTHON_QUERY_COMMAND,
                     session.executed[-1])

  async def testFocusUnknownSession(self):
    self.assertIsNone(await self.tracker.focus('missing.ipynb'))
    self.assertIsNone(self.manager.source)

  async def testLatestFocusWins(self):
    slow = _python_session('slow.ipynb')
    slow.handshake_gate = asyncio.Event()
    fast = _python_session('fast.ipynb')
    self.tracker.add_session(slow)
    self.tracker.add_session(fast)
    slow_focus = asyncio.ensure_future(self.tracker.focus('slow.ipynb'))
    await _spin()
    fast_handler = await self.tracker.focus('fast.ipynb')
    self.assertIs(fast_handler, self.manager.source)
    slow.handshake_gate.set()
    self.assertIsNone(await slow_focus)
    self.assertIs(fast_handler, self.manager.source)
    self.assertTrue(self.manager.has_handler('slow.ipynb'))

  async def testSessionDisposalForgetsHandler(self):
    session = _python_session()
    self.tracker.add_session(session)
    await self.tracker.focus('a.ipynb')
    session.dispose()
    self.assertIsNone(self.manager.source)
    self.assertFalse(self.manager.has_handler('a.ipynb'))
    self.assertFalse(self.tracker.has_session('a.ipynb'))

  async def testSessionDisposedBeforeReady(self):
    session = _python_session()
    session.handshake_gate = asyncio.Event()
    future = self.tracker.add_session(session)
    await _spin()
    with self.assertLogs('varinspector.tracker', level='WARNING'):
      session.dispose()
      with self.assertRaises(errors.DisposedError):
        await future
      await _spin()
    self.assertFalse(self.tracker.has_session('a.ipynb'))
    self.assertFalse(self.manager.has_handler('a.ipynb'))

  async def testReAddAfterDisposal(self):
    session = _python_session()
    first = await self.tracker.add_session(session)
    session.dispose()
    reopened = _python_session()
    second = await self.tracker.add_session(reopened)
    self.assertIsNot(first, second)
    self.assertIs(second, self.manager.get_handler('a.ipynb'))

  async def testRemoveSession(self):
    session = _python_session()
    inspection_handler = await self.tracker.add_session(session)
    self.tracker.remove_session('a.ipynb')
    self.assertTrue(session.is_disposed)
    self.assertTrue(inspection_handler.is_disposed)
    self.assertEqual([], self.tracker.session_ids())

  async def testDispose(self):
    a = _python_session('a.ipynb')
    b = _python_session('b.ipynb')
    self.tracker.add_session(a)
    self.tracker.add_session(b)
    await self.tracker.focus('b.ipynb')
    self.tracker.dispose()
    self.assertTrue(a.is_disposed)
    self.assertTrue(b.is_disposed)
    self.assertIsNone(self.manager.source)
    self.assertEqual({}, dict(self.manager.handlers))


if __name__ == '__main__':
  unittest.main()
